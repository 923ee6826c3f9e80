"""
Database seeding script for a demo driver ledger.

Creates a handful of unsettled entries for one driver and prints bearer
tokens for the admin, restaurant and driver roles.
Run this script after database is set up but before first use.
"""

import asyncio
import sys
from decimal import Decimal
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import AsyncSessionLocal, engine, Base
from backend.app.core.jwt import create_access_token
from backend.app.domain.ledger.ledger_store import LedgerStore
from backend.app.models.enums import UserRole
from backend.app.models.ledger_entry import LedgerEntry
from backend.app.models.ledger_enums import LedgerEntryType

DEMO_DRIVER_ID = "driver-1"

DEMO_ENTRIES = [
    (LedgerEntryType.EARNING, Decimal("15.50"), "Delivery fee", "order-1001", None),
    (LedgerEntryType.EARNING, Decimal("4.00"), "Customer tip", "order-1001", None),
    (LedgerEntryType.EARNING, Decimal("12.75"), "Delivery fee", "order-1002", None),
    (LedgerEntryType.FEE, Decimal("-2.50"), "Platform fee", "order-1002", {"feeType": "platform"}),
    (LedgerEntryType.DEBT, Decimal("-20.00"), "Cash advance", None, {"notes": "Fuel advance"}),
]


async def seed_ledger(db: AsyncSession, driver_id: str = DEMO_DRIVER_ID) -> list[LedgerEntry]:
    """
    Seed demo entries for a driver.
    
    Skips seeding when the driver already has entries. Returns the created
    entries (empty when skipped).
    """
    existing = (await db.execute(
        select(func.count(LedgerEntry.id)).where(LedgerEntry.driver_id == driver_id)
    )).scalar() or 0
    if existing:
        print(f"ℹ️  Ledger for {driver_id} already has {existing} entries, skipping seeding")
        return []

    created = []
    for entry_type, amount, description, order_id, metadata in DEMO_ENTRIES:
        entry = await LedgerStore.append(
            db,
            driver_id=driver_id,
            entry_type=entry_type,
            amount=amount,
            description=description,
            order_id=order_id,
            metadata=metadata,
        )
        created.append(entry)
        print(f"✅ Created {entry_type.value} {amount} ({description})")

    await db.commit()
    return created


async def main():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting ledger seeding...")
        await seed_ledger(db)

    print("\n🎉 Ledger seeding completed successfully!")
    print("\nBearer tokens:")
    print("  - ADMIN:      ", create_access_token({"sub": "admin-1", "role": UserRole.ADMIN.value}))
    print("  - RESTAURANT: ", create_access_token({"sub": "restaurant-1", "role": UserRole.RESTAURANT.value}))
    print("  - DRIVER:     ", create_access_token({"sub": DEMO_DRIVER_ID, "role": UserRole.DRIVER.value}))

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
