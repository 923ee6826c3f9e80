"""
Auto-Settlement Policy.

Settles every unsettled earning, fee and debt entry of a driver once the
pending amount reaches a threshold. All-or-nothing per driver and call.
"""

import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ValidationError, ConflictError
from backend.app.domain.ledger.balance_calculator import BalanceCalculator
from backend.app.domain.ledger.ledger_store import LedgerStore
from backend.app.domain.ledger.money import to_money
from backend.app.domain.ledger.settlement_engine import SettlementEngine, reconcilable_total
from backend.app.schemas.settlement import AutoSettlementResult

logger = logging.getLogger("ledger.auto_settlement")

AUTO_SETTLEMENT_NOTE = "Automatic settlement"


class AutoSettlementPolicy:

    @staticmethod
    async def auto_settle(
        db: AsyncSession,
        driver_id: str,
        min_amount: Any,
        restaurant_id: Optional[str] = None,
        confirmed_by: Optional[str] = None,
    ) -> AutoSettlementResult:
        """
        Settle all unsettled entries of a driver if pending >= min_amount.
        
        With restaurant_id only that driver-restaurant ledger is considered.
        Without it the unsettled set must sit in a single restaurant scope.
        
        Below the threshold, or with nothing positive to pay out, the result
        is a no-op (processed=False); that is an expected outcome, not an error.
        The settlement is created without a payment reference.
        
        Raises:
            ValidationError: negative or malformed min_amount
            ConflictError: a concurrent settlement claimed the entries first,
                or the unsettled entries span several restaurant ledgers
        """
        min_amount = to_money(min_amount, field="minAmount")
        if min_amount < 0:
            raise ValidationError("minAmount must not be negative", details={"minAmount": str(min_amount)})

        balance = await BalanceCalculator.compute_balance(db, driver_id, restaurant_id)
        pending = balance.pending_settlement

        if pending < min_amount:
            logger.info("Auto-settlement skipped for driver %s: pending %s < %s", driver_id, pending, min_amount)
            return AutoSettlementResult(
                processed=False,
                amount=pending,
                message=f"Pending amount {pending:.2f} is below the minimum {min_amount:.2f}",
            )

        entries = await LedgerStore.list_unsettled_entries(db, driver_id, restaurant_id)
        scopes = {e.restaurant_id for e in entries}
        if len(scopes) > 1:
            raise ConflictError(
                "Unsettled entries span several restaurant ledgers; settle one restaurant at a time",
                details={"driver_id": driver_id, "restaurant_ids": sorted(scopes, key=lambda s: s or "")}
            )

        total = reconcilable_total(entries)
        if not entries or total <= 0:
            return AutoSettlementResult(
                processed=False,
                amount=total,
                message="Nothing to settle",
            )

        settlement = await SettlementEngine.settle(
            db,
            driver_id=driver_id,
            entry_ids=[e.id for e in entries],
            amount=total,
            notes=AUTO_SETTLEMENT_NOTE,
            restaurant_id=restaurant_id,
            confirmed_by=confirmed_by,
        )
        return AutoSettlementResult(
            processed=True,
            settlement_id=settlement.id,
            amount=settlement.amount,
            entries_settled=len(entries),
            message="Auto-settlement processed successfully",
        )
