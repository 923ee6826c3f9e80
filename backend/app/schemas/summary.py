"""
Cross-driver reporting schemas.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from backend.app.models.ledger_enums import SummaryPeriod
from backend.app.schemas.common import CamelModel, Money


class TopDriver(CamelModel):
    driver_id: str
    earnings: Money
    deliveries: int


class ActivityItem(CamelModel):
    type: str
    driver_id: str
    amount: Money
    timestamp: datetime
    entry_id: Optional[int] = None
    settlement_id: Optional[int] = None


class LedgerSummary(CamelModel):
    """Earnings summary across all drivers for a reporting window."""
    period: SummaryPeriod
    since: Optional[datetime] = None
    total_drivers: int = 0
    active_drivers: int = 0
    total_earnings: Money = Decimal("0")
    total_fees: Money = Decimal("0")
    total_debts: Money = Decimal("0")
    total_settlements: Money = Decimal("0")
    pending_settlements: Money = Decimal("0")
    top_drivers: List[TopDriver] = []
    recent_activity: List[ActivityItem] = []
