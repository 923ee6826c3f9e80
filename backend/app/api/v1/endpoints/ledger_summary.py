"""
Ledger Summary API Endpoints.

Read-only earnings overview across all drivers.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.guards import require_admin
from backend.app.models.ledger_enums import SummaryPeriod
from backend.app.schemas.common import ApiResponse
from backend.app.schemas.summary import LedgerSummary
from backend.app.services.ledger_reporting import LedgerReportingService

router = APIRouter(prefix="/ledger/summary", tags=["Admin - Ledger Summary"])


@router.get("/all", response_model=ApiResponse[LedgerSummary])
async def get_earnings_summary(
    period: SummaryPeriod = Query(SummaryPeriod.WEEK),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Get earnings totals, top drivers and recent activity for a period."""
    summary = await LedgerReportingService.get_summary(db, period)
    return ApiResponse(data=summary)
