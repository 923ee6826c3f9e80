"""
Ledger Store.

Durable, append-only storage of ledger entries and settlements.
Methods flush but never commit; the caller owns the transaction.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Sequence, Any, Dict

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ValidationError, ConflictError, NotFoundError
from backend.app.core.timeutils import utcnow, as_utc
from backend.app.domain.ledger.money import to_money
from backend.app.models.ledger_entry import LedgerEntry
from backend.app.models.ledger_enums import LedgerEntryType, ECONOMIC_ENTRY_TYPES
from backend.app.models.settlement import Settlement


@dataclass
class Page:
    """One page of a filtered, ordered result set."""
    items: List[Any]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def _require_text(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required", details={"field": field})
    return str(value).strip()


def _check_paging(page: int, limit: int) -> None:
    if page < 1:
        raise ValidationError("page must be >= 1", details={"page": page})
    if limit < 1:
        raise ValidationError("limit must be >= 1", details={"limit": limit})


def _entry_scope(driver_id: str, restaurant_id: Optional[str]) -> list:
    conditions = [LedgerEntry.driver_id == driver_id]
    if restaurant_id is not None:
        conditions.append(LedgerEntry.restaurant_id == restaurant_id)
    return conditions


def _settlement_scope(driver_id: str, restaurant_id: Optional[str]) -> list:
    conditions = [Settlement.driver_id == driver_id]
    if restaurant_id is not None:
        conditions.append(Settlement.restaurant_id == restaurant_id)
    return conditions


def _check_sign(entry_type: LedgerEntryType, amount: Decimal) -> None:
    """Earnings are positive, fees and debts negative, nothing is zero."""
    if amount == 0:
        raise ValidationError("amount must not be zero", details={"type": entry_type.value})
    if entry_type == LedgerEntryType.EARNING and amount < 0:
        raise ValidationError(
            "earning entries must have a positive amount",
            details={"type": entry_type.value, "amount": str(amount)}
        )
    if entry_type in (LedgerEntryType.FEE, LedgerEntryType.DEBT) and amount > 0:
        raise ValidationError(
            f"{entry_type.value} entries must have a negative amount",
            details={"type": entry_type.value, "amount": str(amount)}
        )


class LedgerStore:

    @staticmethod
    async def append(
        db: AsyncSession,
        driver_id: str,
        entry_type: Any,
        amount: Any,
        description: str,
        order_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        restaurant_id: Optional[str] = None,
    ) -> LedgerEntry:
        """
        Append a new, unsettled ledger entry.
        
        Raises:
            ValidationError: missing driver/description, bad type, non-finite
                amount or an amount violating the sign convention
        """
        driver_id = _require_text(driver_id, "driverId")
        description = _require_text(description, "description")
        try:
            entry_type = LedgerEntryType(entry_type)
        except ValueError:
            raise ValidationError("Unknown ledger entry type", details={"type": entry_type})
        amount = to_money(amount)
        _check_sign(entry_type, amount)

        entry = LedgerEntry(
            driver_id=driver_id,
            restaurant_id=restaurant_id or None,
            order_id=order_id or None,
            entry_type=entry_type,
            amount=amount,
            description=description,
            meta_data=metadata or None,
            is_settled=False,
            settled_at=None,
            settlement_id=None,
            created_at=utcnow(),
        )
        db.add(entry)
        await db.flush()
        return entry

    @staticmethod
    async def list_entries(
        db: AsyncSession,
        driver_id: str,
        entry_type: Optional[LedgerEntryType] = None,
        settled: Optional[bool] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        page: int = 1,
        limit: int = 50,
        restaurant_id: Optional[str] = None,
    ) -> Page:
        """
        Filtered, paginated entries for a driver, newest first.
        
        Filters apply before pagination; date bounds are inclusive.
        """
        _check_paging(page, limit)
        conditions = _entry_scope(driver_id, restaurant_id)
        if entry_type is not None:
            conditions.append(LedgerEntry.entry_type == LedgerEntryType(entry_type))
        if settled is not None:
            conditions.append(LedgerEntry.is_settled.is_(settled))
        if start_date is not None:
            conditions.append(LedgerEntry.created_at >= as_utc(start_date))
        if end_date is not None:
            conditions.append(LedgerEntry.created_at <= as_utc(end_date))

        total = (await db.execute(
            select(func.count(LedgerEntry.id)).where(*conditions)
        )).scalar() or 0

        result = await db.execute(
            select(LedgerEntry)
            .where(*conditions)
            .order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return Page(items=list(result.scalars().all()), total=total, page=page, limit=limit)

    @staticmethod
    async def get_entries(db: AsyncSession, entry_ids: Sequence[int]) -> List[LedgerEntry]:
        """Entries with the given ids, in id order. Unknown ids are skipped."""
        if not entry_ids:
            return []
        result = await db.execute(
            select(LedgerEntry)
            .where(LedgerEntry.id.in_(list(entry_ids)))
            .order_by(LedgerEntry.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_entries_for_driver(
        db: AsyncSession, driver_id: str, restaurant_id: Optional[str] = None
    ) -> List[LedgerEntry]:
        result = await db.execute(
            select(LedgerEntry)
            .where(*_entry_scope(driver_id, restaurant_id))
            .order_by(LedgerEntry.created_at, LedgerEntry.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_unsettled_entries(
        db: AsyncSession, driver_id: str, restaurant_id: Optional[str] = None
    ) -> List[LedgerEntry]:
        """Unsettled earning, fee and debt entries of a driver, oldest first."""
        result = await db.execute(
            select(LedgerEntry)
            .where(
                *_entry_scope(driver_id, restaurant_id),
                LedgerEntry.is_settled.is_(False),
                LedgerEntry.entry_type.in_(list(ECONOMIC_ENTRY_TYPES)),
            )
            .order_by(LedgerEntry.created_at, LedgerEntry.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def mark_settled(
        db: AsyncSession,
        entry_ids: Sequence[int],
        settlement_id: int,
        settled_at: Optional[datetime] = None,
    ) -> None:
        """
        Flip a batch of entries to settled in one conditional UPDATE.
        
        The UPDATE only touches rows that are still unsettled, so two
        transactions claiming the same entry cannot both succeed. On
        ConflictError the caller must roll back its transaction.
        
        Raises:
            NotFoundError: an id does not exist
            ConflictError: entries span drivers or one is already settled
        """
        ids = list(dict.fromkeys(entry_ids))
        if not ids:
            raise ValidationError("entryIds must not be empty")

        rows = (await db.execute(
            select(LedgerEntry.id, LedgerEntry.driver_id, LedgerEntry.is_settled)
            .where(LedgerEntry.id.in_(ids))
        )).all()

        missing = sorted(set(ids) - {row.id for row in rows})
        if missing:
            raise NotFoundError("LedgerEntry", details={"missing_entry_ids": missing})

        drivers = {row.driver_id for row in rows}
        if len(drivers) > 1:
            raise ConflictError(
                "Entries in one settlement must belong to the same driver",
                details={"driver_ids": sorted(drivers)}
            )

        already_settled = sorted(row.id for row in rows if row.is_settled)
        if already_settled:
            raise ConflictError(
                "Ledger entries are already settled",
                details={"settled_entry_ids": already_settled}
            )

        result = await db.execute(
            update(LedgerEntry)
            .where(
                LedgerEntry.id.in_(ids),
                LedgerEntry.driver_id == drivers.pop(),
                LedgerEntry.is_settled.is_(False),
            )
            .values(
                is_settled=True,
                settled_at=settled_at or utcnow(),
                settlement_id=settlement_id,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != len(ids):
            raise ConflictError(
                "Ledger entries were claimed by a concurrent settlement",
                details={"entry_ids": ids, "claimed": result.rowcount}
            )

        # Refresh any instances already loaded in this session
        await LedgerStore.get_entries(db, ids)

    @staticmethod
    async def record_settlement(
        db: AsyncSession,
        driver_id: str,
        amount: Decimal,
        settled_entries: Sequence[int],
        payment_method: Optional[str] = None,
        payment_reference: Optional[str] = None,
        notes: Optional[str] = None,
        restaurant_id: Optional[str] = None,
        confirmed_by: Optional[str] = None,
    ) -> Settlement:
        """Insert a settlement row. Does not mark its entries."""
        settlement = Settlement(
            driver_id=driver_id,
            restaurant_id=restaurant_id,
            confirmed_by=confirmed_by,
            amount=amount,
            settled_entries=list(settled_entries),
            payment_method=payment_method,
            payment_reference=payment_reference,
            notes=notes,
            created_at=utcnow(),
        )
        db.add(settlement)
        await db.flush()
        return settlement

    @staticmethod
    async def get_settlement(db: AsyncSession, settlement_id: int) -> Optional[Settlement]:
        result = await db.execute(select(Settlement).where(Settlement.id == settlement_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def list_settlements(
        db: AsyncSession,
        driver_id: str,
        page: int = 1,
        limit: int = 20,
        restaurant_id: Optional[str] = None,
    ) -> Page:
        """Paginated settlements for a driver, newest first."""
        _check_paging(page, limit)
        conditions = _settlement_scope(driver_id, restaurant_id)
        total = (await db.execute(
            select(func.count(Settlement.id)).where(*conditions)
        )).scalar() or 0
        result = await db.execute(
            select(Settlement)
            .where(*conditions)
            .order_by(Settlement.created_at.desc(), Settlement.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return Page(items=list(result.scalars().all()), total=total, page=page, limit=limit)

    @staticmethod
    async def list_settlements_for_driver(
        db: AsyncSession, driver_id: str, restaurant_id: Optional[str] = None
    ) -> List[Settlement]:
        result = await db.execute(
            select(Settlement)
            .where(*_settlement_scope(driver_id, restaurant_id))
            .order_by(Settlement.created_at, Settlement.id)
        )
        return list(result.scalars().all())
