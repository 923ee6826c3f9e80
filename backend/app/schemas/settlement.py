"""
Settlement Schemas.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from pydantic import Field

from backend.app.core.timeutils import as_utc
from backend.app.schemas.common import CamelModel, Money, Pagination
from backend.app.schemas.ledger import LedgerEntryResponse


class SettlementCreate(CamelModel):
    """Schema for settling a batch of ledger entries."""
    driver_id: str = Field(..., min_length=1, max_length=64)
    restaurant_id: Optional[str] = Field(None, min_length=1, max_length=64)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    settled_entries: List[int] = Field(..., min_length=1)
    payment_method: Optional[str] = Field(None, max_length=100)
    payment_reference: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None


class SettlementResponse(CamelModel):
    """Schema for displaying settlements."""
    id: int
    driver_id: str
    restaurant_id: Optional[str] = None
    amount: Money
    settled_entries: List[int]
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    notes: Optional[str] = None
    confirmed_by: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_settlement(cls, settlement) -> "SettlementResponse":
        return cls(
            id=settlement.id,
            driver_id=settlement.driver_id,
            restaurant_id=settlement.restaurant_id,
            amount=settlement.amount,
            settled_entries=list(settlement.settled_entries or []),
            payment_method=settlement.payment_method,
            payment_reference=settlement.payment_reference,
            notes=settlement.notes,
            confirmed_by=settlement.confirmed_by,
            created_at=as_utc(settlement.created_at),
        )


class SettlementDetailResponse(SettlementResponse):
    """Settlement with the ledger entries it covers."""
    entries: List[LedgerEntryResponse] = Field(default_factory=list)


class SettlementPage(CamelModel):
    """Paginated settlements."""
    settlements: List[SettlementResponse]
    pagination: Pagination


class AutoSettleRequest(CamelModel):
    """Threshold for an automatic settlement run."""
    min_amount: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    restaurant_id: Optional[str] = Field(None, min_length=1, max_length=64)


class AutoSettlementResult(CamelModel):
    """Outcome of an automatic settlement run, settled or skipped."""
    processed: bool
    settlement_id: Optional[int] = None
    amount: Money
    entries_settled: int = 0
    message: str
