"""
Settlement API Endpoints.

Recording payouts, settlement history and automatic settlement.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Body, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.config import settings
from backend.app.core.dependencies import get_current_user
from backend.app.core.guards import require_role, require_admin, ledger_guard, LEDGER_OPERATOR_ROLES
from backend.app.domain.ledger.auto_settlement import AutoSettlementPolicy
from backend.app.domain.ledger.settlement_engine import SettlementEngine
from backend.app.schemas.common import ApiResponse
from backend.app.schemas.settlement import (
    SettlementCreate, SettlementResponse, SettlementDetailResponse, SettlementPage,
    AutoSettleRequest, AutoSettlementResult
)
from backend.app.services.audit import log_ledger_write, AuditAction
from backend.app.services.ledger_reporting import LedgerReportingService

router = APIRouter(prefix="/ledger", tags=["Settlements"])


@router.post("/settlement", response_model=ApiResponse[SettlementResponse], status_code=status.HTTP_201_CREATED)
async def create_settlement(
    settlement_in: SettlementCreate,
    current_user: dict = Depends(require_role(LEDGER_OPERATOR_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """
    Settle a batch of unsettled ledger entries.
    
    The amount must equal the net of the settled entries exactly, and the
    entries must share one restaurant ledger. Restaurant callers settle only
    their own ledger. The caller is recorded as the confirming actor.
    """
    restaurant_id = ledger_guard.restaurant_scope(settlement_in.restaurant_id, current_user)
    settlement = await SettlementEngine.settle(
        db,
        driver_id=settlement_in.driver_id,
        restaurant_id=restaurant_id,
        confirmed_by=current_user["user_id"],
        entry_ids=settlement_in.settled_entries,
        amount=settlement_in.amount,
        payment_method=settlement_in.payment_method,
        payment_reference=settlement_in.payment_reference,
        notes=settlement_in.notes,
    )
    response = SettlementResponse.from_settlement(settlement)
    
    await log_ledger_write(
        db=db,
        action=AuditAction.SETTLEMENT_CREATED,
        current_user=current_user,
        driver_id=response.driver_id,
        metadata={
            "settlement_id": response.id,
            "restaurant_id": response.restaurant_id,
            "amount": f"{response.amount:.2f}",
            "entry_ids": response.settled_entries
        }
    )
    
    return ApiResponse(data=response)


@router.get("/settlements/{driver_id}", response_model=ApiResponse[SettlementPage])
async def list_driver_settlements(
    driver_id: str = Path(..., description="Driver ID"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.settlements_page_limit, ge=1, le=settings.max_page_limit),
    restaurant_id: Optional[str] = Query(None, alias="restaurantId"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List a driver's settlements, newest first."""
    ledger_guard.enforce(driver_id, current_user, resource_name="settlement history")
    restaurant_id = ledger_guard.restaurant_scope(restaurant_id, current_user)
    
    data = await LedgerReportingService.list_driver_settlements(
        db, driver_id, page=page, limit=limit, restaurant_id=restaurant_id
    )
    return ApiResponse(data=data)


@router.get("/settlement/{settlement_id}", response_model=ApiResponse[SettlementDetailResponse])
async def get_settlement(
    settlement_id: int = Path(..., description="Settlement ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get a settlement with the entries it covers."""
    detail = await LedgerReportingService.get_settlement_detail(db, settlement_id)
    ledger_guard.enforce(detail.driver_id, current_user, resource_name="settlement")
    ledger_guard.enforce_restaurant_row(detail.restaurant_id, current_user, resource_name="settlement")
    
    return ApiResponse(data=detail)


@router.post("/auto-settle/{driver_id}", response_model=ApiResponse[AutoSettlementResult])
async def auto_settle_driver(
    driver_id: str = Path(..., description="Driver ID"),
    settle_in: Optional[AutoSettleRequest] = Body(None),
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Settle every unsettled entry of a driver if the pending amount
    reaches minAmount (default from configuration). restaurantId narrows the
    run to one driver-restaurant ledger.
    """
    min_amount = settings.auto_settle_default_min_amount
    restaurant_id = None
    if settle_in is not None:
        if settle_in.min_amount is not None:
            min_amount = settle_in.min_amount
        restaurant_id = settle_in.restaurant_id
    
    result = await AutoSettlementPolicy.auto_settle(
        db, driver_id, min_amount,
        restaurant_id=restaurant_id,
        confirmed_by=current_user["user_id"],
    )
    
    await log_ledger_write(
        db=db,
        action=AuditAction.AUTO_SETTLEMENT_PROCESSED if result.processed else AuditAction.AUTO_SETTLEMENT_SKIPPED,
        current_user=current_user,
        driver_id=driver_id,
        metadata={
            "settlement_id": result.settlement_id,
            "restaurant_id": restaurant_id,
            "amount": f"{result.amount:.2f}",
            "min_amount": f"{min_amount:.2f}"
        }
    )
    
    return ApiResponse(data=result)
