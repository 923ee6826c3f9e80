"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import ledger, settlements, ledger_summary, audit, auth

router = APIRouter()

# Session endpoints
router.include_router(auth.router)

# Driver ledger endpoints
router.include_router(ledger.router)

# Settlement endpoints
router.include_router(settlements.router)

# Admin summary and audit endpoints
router.include_router(ledger_summary.router)
router.include_router(audit.router)
