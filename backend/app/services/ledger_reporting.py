"""
Ledger Reporting Service.

Read-only views over the driver ledger: balances, filtered entry pages,
settlement history and the cross-driver earnings summary.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import select, func, desc
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import NotFoundError
from backend.app.core.timeutils import utcnow, as_utc
from backend.app.domain.ledger.balance_calculator import BalanceCalculator
from backend.app.domain.ledger.ledger_store import LedgerStore, Page
from backend.app.domain.ledger.money import money_sum
from backend.app.models.ledger_entry import LedgerEntry
from backend.app.models.ledger_enums import LedgerEntryType, SummaryPeriod, ECONOMIC_ENTRY_TYPES
from backend.app.models.settlement import Settlement
from backend.app.schemas.common import Pagination
from backend.app.schemas.ledger import DriverBalance, LedgerEntryPage, LedgerEntryResponse
from backend.app.schemas.settlement import SettlementPage, SettlementResponse, SettlementDetailResponse
from backend.app.schemas.summary import LedgerSummary, TopDriver, ActivityItem

PERIOD_WINDOWS = {
    SummaryPeriod.DAY: timedelta(days=1),
    SummaryPeriod.WEEK: timedelta(days=7),
    SummaryPeriod.MONTH: timedelta(days=30),
    SummaryPeriod.YEAR: timedelta(days=365),
    SummaryPeriod.ALL: None,
}


def period_start(period: SummaryPeriod, now: Optional[datetime] = None) -> Optional[datetime]:
    """Lower bound of a reporting window; None for ``all``."""
    window = PERIOD_WINDOWS[SummaryPeriod(period)]
    if window is None:
        return None
    return (now or utcnow()) - window


def _pagination(page: Page) -> Pagination:
    return Pagination(page=page.page, limit=page.limit, total=page.total, total_pages=page.total_pages)


class LedgerReportingService:

    @staticmethod
    async def get_driver_balance(
        db: AsyncSession, driver_id: str, restaurant_id: Optional[str] = None
    ) -> DriverBalance:
        return await BalanceCalculator.compute_balance(db, driver_id, restaurant_id)

    @staticmethod
    async def list_driver_entries(
        db: AsyncSession,
        driver_id: str,
        entry_type: Optional[LedgerEntryType] = None,
        settled: Optional[bool] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        page: int = 1,
        limit: int = 50,
        restaurant_id: Optional[str] = None,
    ) -> LedgerEntryPage:
        result = await LedgerStore.list_entries(
            db, driver_id,
            entry_type=entry_type,
            settled=settled,
            start_date=start_date,
            end_date=end_date,
            page=page,
            limit=limit,
            restaurant_id=restaurant_id,
        )
        return LedgerEntryPage(
            entries=[LedgerEntryResponse.from_entry(e) for e in result.items],
            pagination=_pagination(result),
        )

    @staticmethod
    async def list_driver_settlements(
        db: AsyncSession,
        driver_id: str,
        page: int = 1,
        limit: int = 20,
        restaurant_id: Optional[str] = None,
    ) -> SettlementPage:
        result = await LedgerStore.list_settlements(
            db, driver_id, page=page, limit=limit, restaurant_id=restaurant_id
        )
        return SettlementPage(
            settlements=[SettlementResponse.from_settlement(s) for s in result.items],
            pagination=_pagination(result),
        )

    @staticmethod
    async def get_settlement_detail(db: AsyncSession, settlement_id: int) -> SettlementDetailResponse:
        """
        Settlement together with the ledger entries it covers.
        
        Raises:
            NotFoundError: unknown settlement id
        """
        settlement = await LedgerStore.get_settlement(db, settlement_id)
        if settlement is None:
            raise NotFoundError("Settlement", settlement_id)

        entries = await LedgerStore.get_entries(db, settlement.settled_entries or [])
        base = SettlementResponse.from_settlement(settlement)
        return SettlementDetailResponse(
            **base.model_dump(),
            entries=[LedgerEntryResponse.from_entry(e) for e in entries],
        )

    @staticmethod
    async def get_summary(db: AsyncSession, period: SummaryPeriod = SummaryPeriod.WEEK) -> LedgerSummary:
        """
        Earnings summary across all drivers.
        
        Money totals and activity cover the window only; pendingSettlements
        is the net unsettled amount over the whole ledger.
        """
        period = SummaryPeriod(period)
        since = period_start(period)

        window = []
        settlement_window = []
        if since is not None:
            window.append(LedgerEntry.created_at >= since)
            settlement_window.append(Settlement.created_at >= since)

        # 1. Driver counts
        total_drivers = (await db.execute(
            select(func.count(func.distinct(LedgerEntry.driver_id)))
        )).scalar() or 0
        active_drivers = (await db.execute(
            select(func.count(func.distinct(LedgerEntry.driver_id))).where(*window)
        )).scalar() or 0

        # 2. Windowed totals per entry type
        type_totals = {t: Decimal("0") for t in LedgerEntryType}
        rows = await db.execute(
            select(LedgerEntry.entry_type, func.sum(LedgerEntry.amount))
            .where(*window)
            .group_by(LedgerEntry.entry_type)
        )
        for entry_type, amount in rows:
            type_totals[LedgerEntryType(entry_type)] = money_sum([amount or 0])

        total_settlements = (await db.execute(
            select(func.sum(Settlement.amount)).where(*settlement_window)
        )).scalar()

        # 3. Pending across all drivers
        pending = (await db.execute(
            select(func.sum(LedgerEntry.amount)).where(
                LedgerEntry.is_settled.is_(False),
                LedgerEntry.entry_type.in_(list(ECONOMIC_ENTRY_TYPES)),
            )
        )).scalar()

        return LedgerSummary(
            period=period,
            since=since,
            total_drivers=total_drivers,
            active_drivers=active_drivers,
            total_earnings=type_totals[LedgerEntryType.EARNING],
            total_fees=type_totals[LedgerEntryType.FEE],
            total_debts=type_totals[LedgerEntryType.DEBT],
            total_settlements=money_sum([total_settlements or 0]),
            pending_settlements=money_sum([pending or 0]),
            top_drivers=await LedgerReportingService._top_drivers(db, window),
            recent_activity=await LedgerReportingService._recent_activity(db, window, settlement_window),
        )

    @staticmethod
    async def _top_drivers(db: AsyncSession, window: list) -> List[TopDriver]:
        earnings = func.sum(LedgerEntry.amount).label("earnings")
        stmt = select(
            LedgerEntry.driver_id,
            earnings,
            func.count(func.distinct(LedgerEntry.order_id)).label("deliveries"),
        ).where(
            LedgerEntry.entry_type == LedgerEntryType.EARNING,
            *window
        ).group_by(LedgerEntry.driver_id)\
         .order_by(desc(earnings), LedgerEntry.driver_id)\
         .limit(settings.summary_top_drivers)

        results = await db.execute(stmt)

        data = []
        for row in results:
            data.append(TopDriver(
                driver_id=row.driver_id,
                earnings=money_sum([row.earnings or 0]),
                deliveries=row.deliveries,
            ))
        return data

    @staticmethod
    async def _recent_activity(db: AsyncSession, window: list, settlement_window: list) -> List[ActivityItem]:
        limit = settings.summary_recent_activity

        entries = (await db.execute(
            select(LedgerEntry)
            .where(*window)
            .order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())
            .limit(limit)
        )).scalars().all()
        settlements = (await db.execute(
            select(Settlement)
            .where(*settlement_window)
            .order_by(Settlement.created_at.desc(), Settlement.id.desc())
            .limit(limit)
        )).scalars().all()

        items = [
            ActivityItem(
                type=e.entry_type.value,
                driver_id=e.driver_id,
                amount=e.amount,
                timestamp=as_utc(e.created_at),
                entry_id=e.id,
            )
            for e in entries
        ] + [
            ActivityItem(
                type="settlement",
                driver_id=s.driver_id,
                amount=s.amount,
                timestamp=as_utc(s.created_at),
                settlement_id=s.id,
            )
            for s in settlements
        ]
        items.sort(key=lambda item: item.timestamp, reverse=True)
        return items[:limit]
