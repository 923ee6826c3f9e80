"""
Ledger Audit API Endpoints.

Admin read access to the audit trail of ledger writes.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.guards import require_admin
from backend.app.schemas.audit import AuditTrail, AuditLogResponse
from backend.app.schemas.common import ApiResponse
from backend.app.services.audit import get_audit_trail

router = APIRouter(prefix="/ledger/audit", tags=["Admin - Ledger Audit"])


@router.get("", response_model=ApiResponse[AuditTrail])
async def get_ledger_audit_trail(
    driver_id: Optional[str] = Query(None, alias="driverId", description="Filter by driver"),
    action: Optional[str] = Query(None, description="Filter by action type"),
    limit: int = Query(100, ge=1, le=500, description="Maximum records to return"),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Get the audit trail of ledger writes, most recent first (admin-only).
    """
    logs = await get_audit_trail(db=db, driver_id=driver_id, action=action, limit=limit)
    
    return ApiResponse(data=AuditTrail(
        logs=[AuditLogResponse.from_log(log) for log in logs],
        total=len(logs)
    ))
