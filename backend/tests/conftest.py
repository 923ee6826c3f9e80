"""
Centralized Test Configuration.
"""

import asyncio

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.core.jwt import create_access_token
from backend.app.core.reliability import notification_circuit_breaker
from backend.app.models.enums import UserRole
import backend.app.core.redis_client as redis_client_module

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)).lower():
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class MockLock:
    """In-process stand-in for a redis-py asyncio Lock."""

    def __init__(self, redis, name, timeout=None, blocking_timeout=None):
        self.redis = redis
        self.name = name
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout
        self._held = False

    async def acquire(self):
        lock = self.redis.locks.setdefault(self.name, asyncio.Lock())
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self.blocking_timeout)
        except asyncio.TimeoutError:
            return False
        self._held = True
        return True

    async def release(self):
        if self._held:
            self._held = False
            self.redis.locks[self.name].release()


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self.locks = {}
        self._closed = False
    
    async def ping(self):
        if self._closed:
            return False
        return True
    
    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)
        
    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True
    
    async def delete(self, key):
        if self._closed:
            return 0
        if key in self.store:
            del self.store[key]
            return 1
        return 0
    
    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0

    def lock(self, name, timeout=None, blocking_timeout=None):
        return MockLock(self, name, timeout=timeout, blocking_timeout=blocking_timeout)
        
    async def flushdb(self):
        if not self._closed:
            self.store = {}
            self.locks = {}
        
    async def aclose(self):
        self._closed = True
        self.store = {}

# Redis Fixture (Session Scope)
@pytest.fixture(scope="session")
def redis_client_session():
    return MockRedis()

@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """Apply overrides once for the session.
    Global override is safer here than per-test override to avoid app state flux.
    """
    
    # Patch the global redis client used for revocation and settlement locks
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session
    
    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield
    
    # Restore and clear
    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client

@pytest.fixture(autouse=True)
async def setup_database(redis_client_session):
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    await redis_client_session.flushdb()
    notification_circuit_breaker.reset_state()
    
    yield
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session

@pytest.fixture
def session_factory():
    return TestingSessionLocal


def auth_headers(user_id: str, role: UserRole) -> dict:
    """Bearer header for a caller with the given id and role."""
    token = create_access_token(data={"sub": user_id, "role": role.value})
    return {"Authorization": f"Bearer {token}"}

@pytest.fixture
def admin_headers():
    return auth_headers("admin-1", UserRole.ADMIN)

@pytest.fixture
def restaurant_headers():
    return auth_headers("restaurant-1", UserRole.RESTAURANT)

@pytest.fixture
def driver_headers():
    return auth_headers("driver-1", UserRole.DRIVER)
