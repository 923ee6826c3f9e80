"""
Driver Ledger API Endpoints.

Appending entries and reading a driver's ledger and balance.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.config import settings
from backend.app.core.dependencies import get_current_user
from backend.app.core.guards import require_role, ledger_guard, LEDGER_OPERATOR_ROLES
from backend.app.domain.ledger.ledger_store import LedgerStore
from backend.app.models.ledger_enums import LedgerEntryType
from backend.app.schemas.common import ApiResponse
from backend.app.schemas.ledger import (
    LedgerEntryCreate, LedgerEntryResponse, LedgerEntryPage, DriverBalance
)
from backend.app.services.audit import log_ledger_write, AuditAction
from backend.app.services.ledger_reporting import LedgerReportingService

router = APIRouter(prefix="/ledger", tags=["Driver Ledger"])


@router.get("/driver/{driver_id}", response_model=ApiResponse[LedgerEntryPage])
async def list_driver_ledger(
    driver_id: str = Path(..., description="Driver ID"),
    entry_type: Optional[LedgerEntryType] = Query(None, alias="type"),
    settled: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.entries_page_limit, ge=1, le=settings.max_page_limit),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    restaurant_id: Optional[str] = Query(None, alias="restaurantId"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    List a driver's ledger entries, newest first.
    
    Filters by type, settled flag, restaurant and an inclusive date range
    before paginating. Restaurant callers only see their own ledger.
    """
    ledger_guard.enforce(driver_id, current_user)
    restaurant_id = ledger_guard.restaurant_scope(restaurant_id, current_user)
    
    data = await LedgerReportingService.list_driver_entries(
        db, driver_id,
        entry_type=entry_type,
        settled=settled,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
        restaurant_id=restaurant_id,
    )
    return ApiResponse(data=data)


@router.post("/entry", response_model=ApiResponse[LedgerEntryResponse], status_code=status.HTTP_201_CREATED)
async def create_ledger_entry(
    entry_in: LedgerEntryCreate,
    current_user: dict = Depends(require_role(LEDGER_OPERATOR_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """
    Append an entry to a driver's ledger.
    
    Earnings must be positive, fees and debts negative. Restaurant callers
    always write into their own driver-restaurant ledger.
    """
    restaurant_id = ledger_guard.restaurant_scope(entry_in.restaurant_id, current_user)
    entry = await LedgerStore.append(
        db,
        driver_id=entry_in.driver_id,
        restaurant_id=restaurant_id,
        entry_type=entry_in.entry_type,
        amount=entry_in.amount,
        description=entry_in.description,
        order_id=entry_in.order_id,
        metadata=entry_in.metadata_dict(),
    )
    await db.commit()
    response = LedgerEntryResponse.from_entry(entry)
    
    await log_ledger_write(
        db=db,
        action=AuditAction.LEDGER_ENTRY_CREATED,
        current_user=current_user,
        driver_id=entry.driver_id,
        metadata={
            "entry_id": response.id,
            "restaurant_id": response.restaurant_id,
            "type": response.entry_type.value,
            "amount": f"{response.amount:.2f}"
        }
    )
    
    return ApiResponse(data=response)


@router.get("/balance/{driver_id}", response_model=ApiResponse[DriverBalance])
async def get_driver_balance(
    driver_id: str = Path(..., description="Driver ID"),
    restaurant_id: Optional[str] = Query(None, alias="restaurantId"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Get the derived balance of a driver, optionally for one restaurant.
    
    Unknown drivers have a zero balance.
    """
    ledger_guard.enforce(driver_id, current_user, resource_name="balance")
    restaurant_id = ledger_guard.restaurant_scope(restaurant_id, current_user)
    
    balance = await LedgerReportingService.get_driver_balance(db, driver_id, restaurant_id)
    return ApiResponse(data=balance)
