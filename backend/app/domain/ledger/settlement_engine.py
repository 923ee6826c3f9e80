"""
Settlement Engine (Domain Logic).

Converts a set of unsettled ledger entries into a recorded payout.
Must be atomic: the settlement row and the settled flags are committed
together or not at all.
"""

import logging
from decimal import Decimal
from typing import Optional, Sequence, Any, List

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import (
    AppException, ValidationError, NotFoundError, ConflictError,
    ReconciliationError, UnknownError
)
from backend.app.domain.ledger.ledger_store import LedgerStore
from backend.app.domain.ledger.money import to_money, money_sum
from backend.app.models.ledger_entry import LedgerEntry
from backend.app.models.ledger_enums import ECONOMIC_ENTRY_TYPES
from backend.app.models.settlement import Settlement
from backend.app.services.notification_service import NotificationService
from backend.app.services.settlement_locking import driver_settlement_lock

logger = logging.getLogger("ledger.settlement")

SERIALIZATION_FAILURE_MARKERS = ("could not serialize", "40001", "deadlock detected")


def reconcilable_total(entries: Sequence[LedgerEntry]) -> Decimal:
    """Sum a settlement must match: earnings, fees and debts only."""
    return money_sum(e.amount for e in entries if e.entry_type in ECONOMIC_ENTRY_TYPES)


def _is_serialization_failure(exc: DBAPIError) -> bool:
    text = str(exc.orig if exc.orig is not None else exc).lower()
    return any(marker in text for marker in SERIALIZATION_FAILURE_MARKERS)


class SettlementEngine:

    @staticmethod
    async def settle(
        db: AsyncSession,
        driver_id: str,
        entry_ids: Sequence[int],
        amount: Any,
        payment_method: Optional[str] = None,
        payment_reference: Optional[str] = None,
        notes: Optional[str] = None,
        restaurant_id: Optional[str] = None,
        confirmed_by: Optional[str] = None,
    ) -> Settlement:
        """
        Settle a batch of entries for a driver.
        
        Flow:
        1. Validate input (non-empty ids, positive amount)
        2. Take the driver settlement lock
        3. Check every entry exists, belongs to the driver, is unsettled
           and shares one restaurant scope (restaurant_id, when given)
        4. Reconcile the amount against the entries
        5. Record the settlement and mark entries settled
        6. Commit (rollback on any failure)
        7. Notify the driver (fire-and-forget)
        
        The session must not hold uncommitted writes; this method commits.
        On failure it rolls back, which expires every instance the caller
        loaded through this session. Failed settlements are never retried here.
        
        Raises:
            ValidationError, NotFoundError, ConflictError,
            ReconciliationError, UnknownError
        """
        if not driver_id or not str(driver_id).strip():
            raise ValidationError("driverId is required", details={"field": "driverId"})
        ids = list(dict.fromkeys(entry_ids or []))
        if not ids:
            raise ValidationError("At least one ledger entry must be settled", details={"field": "settledEntries"})
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError("Settlement amount must be positive", details={"amount": str(amount)})

        async with driver_settlement_lock(driver_id):
            try:
                settlement = await SettlementEngine._apply(
                    db, driver_id, ids, amount, payment_method, payment_reference, notes,
                    restaurant_id, confirmed_by,
                )
                await db.commit()
            except AppException:
                await db.rollback()
                raise
            except DBAPIError as exc:
                await db.rollback()
                if _is_serialization_failure(exc):
                    raise ConflictError(
                        "Ledger entries were modified by a concurrent settlement",
                        details={"entry_ids": ids}
                    ) from exc
                logger.exception("Settlement storage failure for driver %s", driver_id)
                raise UnknownError(details={"driver_id": driver_id}) from exc

        logger.info(
            "Settlement %s recorded for driver %s: amount=%s entries=%s",
            settlement.id, driver_id, settlement.amount, len(ids)
        )
        await NotificationService.notify_settlement(db, settlement)
        return settlement

    @staticmethod
    async def _apply(
        db: AsyncSession,
        driver_id: str,
        ids: List[int],
        amount: Decimal,
        payment_method: Optional[str],
        payment_reference: Optional[str],
        notes: Optional[str],
        restaurant_id: Optional[str],
        confirmed_by: Optional[str],
    ) -> Settlement:
        entries = await LedgerStore.get_entries(db, ids)

        missing = sorted(set(ids) - {e.id for e in entries})
        if missing:
            raise NotFoundError("LedgerEntry", details={"missing_entry_ids": missing})

        foreign = sorted(e.id for e in entries if e.driver_id != driver_id)
        if foreign:
            raise ConflictError(
                "Ledger entries belong to a different driver",
                details={"driver_id": driver_id, "entry_ids": foreign}
            )

        scopes = {e.restaurant_id for e in entries}
        if len(scopes) > 1 or (restaurant_id is not None and scopes != {restaurant_id}):
            raise ConflictError(
                "Ledger entries must belong to one restaurant ledger",
                details={
                    "restaurant_id": restaurant_id,
                    "entry_restaurant_ids": sorted(scopes, key=lambda s: s or ""),
                }
            )

        settled = sorted(e.id for e in entries if e.is_settled)
        if settled:
            raise ConflictError(
                "Ledger entries are already settled",
                details={"settled_entry_ids": settled}
            )

        expected = reconcilable_total(entries)
        if amount != expected:
            raise ReconciliationError(expected=expected, given=amount, details={"entry_ids": ids})

        settlement = await LedgerStore.record_settlement(
            db,
            driver_id=driver_id,
            restaurant_id=scopes.pop(),
            confirmed_by=confirmed_by,
            amount=amount,
            settled_entries=ids,
            payment_method=payment_method,
            payment_reference=payment_reference,
            notes=notes,
        )
        await LedgerStore.mark_settled(db, ids, settlement.id, settled_at=settlement.created_at)
        return settlement
