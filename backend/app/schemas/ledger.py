"""
Ledger Schemas.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any

from pydantic import Field, ConfigDict
from pydantic.alias_generators import to_camel

from backend.app.core.timeutils import as_utc
from backend.app.models.ledger_enums import LedgerEntryType
from backend.app.schemas.common import CamelModel, Money, Pagination


class LedgerEntryMetadata(CamelModel):
    """Free-form annotations; the known keys are typed, others pass through."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    fee_type: Optional[str] = None
    settlement_id: Optional[str] = None
    notes: Optional[str] = None


class LedgerEntryCreate(CamelModel):
    """Schema for appending a ledger entry."""
    driver_id: str = Field(..., min_length=1, max_length=64)
    restaurant_id: Optional[str] = Field(None, min_length=1, max_length=64)
    order_id: Optional[str] = Field(None, max_length=64)
    entry_type: LedgerEntryType = Field(..., alias="type")
    amount: Decimal = Field(..., max_digits=12, decimal_places=2)
    description: str = Field(..., min_length=1, max_length=255)
    meta_data: Optional[LedgerEntryMetadata] = Field(None, alias="metadata")

    def metadata_dict(self) -> Optional[Dict[str, Any]]:
        if self.meta_data is None:
            return None
        return self.meta_data.model_dump(by_alias=True, exclude_none=True)


class LedgerEntryResponse(CamelModel):
    """Schema for displaying a ledger entry."""
    id: int
    driver_id: str
    restaurant_id: Optional[str] = None
    order_id: Optional[str] = None
    entry_type: LedgerEntryType = Field(..., alias="type")
    amount: Money
    description: str
    is_settled: bool
    settled_at: Optional[datetime] = None
    settlement_id: Optional[int] = None
    meta_data: Optional[Dict[str, Any]] = Field(None, alias="metadata")
    created_at: datetime

    @classmethod
    def from_entry(cls, entry) -> "LedgerEntryResponse":
        return cls(
            id=entry.id,
            driver_id=entry.driver_id,
            restaurant_id=entry.restaurant_id,
            order_id=entry.order_id,
            entry_type=entry.entry_type,
            amount=entry.amount,
            description=entry.description,
            is_settled=entry.is_settled,
            settled_at=as_utc(entry.settled_at),
            settlement_id=entry.settlement_id,
            meta_data=entry.meta_data,
            created_at=as_utc(entry.created_at),
        )


class LedgerEntryPage(CamelModel):
    """Paginated ledger entries."""
    entries: List[LedgerEntryResponse]
    pagination: Pagination


class BalanceBreakdown(CamelModel):
    """Unsettled amounts by entry type."""
    unsettled_earnings: Money = Decimal("0")
    unsettled_fees: Money = Decimal("0")
    unsettled_debts: Money = Decimal("0")
    net_unsettled: Money = Decimal("0")


class LastSettlement(CamelModel):
    """Most recent payout for a driver."""
    id: int
    amount: Money
    date: datetime


class DriverBalance(CamelModel):
    """Derived financial position of a driver. Never persisted."""
    driver_id: str
    restaurant_id: Optional[str] = None
    total_earnings: Money = Decimal("0")
    total_fees: Money = Decimal("0")
    total_debts: Money = Decimal("0")
    total_settlements: Money = Decimal("0")
    current_balance: Money = Decimal("0")
    pending_settlement: Money = Decimal("0")
    breakdown: BalanceBreakdown = Field(default_factory=BalanceBreakdown)
    last_settlement: Optional[LastSettlement] = None
