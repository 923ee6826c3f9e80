"""
Balance Calculator.

Derives a driver's financial position from its ledger entries and
settlements. Nothing here is cached or stored: a balance is always
recomputed from the ledger so it cannot drift from it.
"""

from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.timeutils import as_utc
from backend.app.domain.ledger.ledger_store import LedgerStore
from backend.app.domain.ledger.money import money_sum
from backend.app.models.ledger_entry import LedgerEntry
from backend.app.models.ledger_enums import LedgerEntryType, ECONOMIC_ENTRY_TYPES
from backend.app.models.settlement import Settlement
from backend.app.schemas.ledger import DriverBalance, BalanceBreakdown, LastSettlement


def calculate_balance(
    driver_id: str,
    entries: Iterable[LedgerEntry],
    settlements: Iterable[Settlement],
    restaurant_id: Optional[str] = None,
) -> DriverBalance:
    """
    Pure balance derivation over a snapshot of one driver's ledger.
    
    currentBalance = totalEarnings + totalFees + totalDebts - totalSettlements
    pendingSettlement = net of unsettled earning/fee/debt entries
    """
    entries = list(entries)
    settlements = list(settlements)

    def total(entry_type: LedgerEntryType, unsettled_only: bool = False) -> Decimal:
        return money_sum(
            e.amount for e in entries
            if e.entry_type == entry_type and (not unsettled_only or not e.is_settled)
        )

    total_earnings = total(LedgerEntryType.EARNING)
    total_fees = total(LedgerEntryType.FEE)
    total_debts = total(LedgerEntryType.DEBT)
    total_settlements = money_sum(s.amount for s in settlements)

    net_unsettled = money_sum(
        e.amount for e in entries
        if e.entry_type in ECONOMIC_ENTRY_TYPES and not e.is_settled
    )

    last_settlement = None
    if settlements:
        latest = max(settlements, key=lambda s: (as_utc(s.created_at), s.id))
        last_settlement = LastSettlement(id=latest.id, amount=latest.amount, date=as_utc(latest.created_at))

    return DriverBalance(
        driver_id=driver_id,
        restaurant_id=restaurant_id,
        total_earnings=total_earnings,
        total_fees=total_fees,
        total_debts=total_debts,
        total_settlements=total_settlements,
        current_balance=total_earnings + total_fees + total_debts - total_settlements,
        pending_settlement=net_unsettled,
        breakdown=BalanceBreakdown(
            unsettled_earnings=total(LedgerEntryType.EARNING, unsettled_only=True),
            unsettled_fees=total(LedgerEntryType.FEE, unsettled_only=True),
            unsettled_debts=total(LedgerEntryType.DEBT, unsettled_only=True),
            net_unsettled=net_unsettled,
        ),
        last_settlement=last_settlement,
    )


class BalanceCalculator:

    @staticmethod
    async def compute_balance(
        db: AsyncSession, driver_id: str, restaurant_id: Optional[str] = None
    ) -> DriverBalance:
        """
        Load a driver's entries and settlements and derive the balance.
        
        With restaurant_id, only that driver-restaurant ledger is counted.
        
        Both reads run in the session's current transaction, so with
        REPEATABLE READ (PostgreSQL) or SQLite they see one snapshot.
        An unknown driver yields a zero balance.
        """
        entries = await LedgerStore.list_entries_for_driver(db, driver_id, restaurant_id)
        settlements = await LedgerStore.list_settlements_for_driver(db, driver_id, restaurant_id)
        return calculate_balance(driver_id, entries, settlements, restaurant_id=restaurant_id)
