"""
Notification Service.

Fire-and-forget sink for driver notifications. Delivery problems are
logged and never propagate into the ledger flow.
"""

import logging
from typing import Optional, Dict, Any

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.reliability import notification_circuit_breaker, CircuitOpenError
from backend.app.models.notification import Notification, NotificationCategory
from backend.app.models.settlement import Settlement

logger = logging.getLogger("ledger.notifications")


class NotificationService:
    
    @staticmethod
    async def create_notification(
        db: AsyncSession,
        recipient_id: str,
        title: str,
        body: str,
        category: NotificationCategory = NotificationCategory.LEDGER,
        settlement_id: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None
    ) -> Notification:
        """Stage a single notification. Caller commits."""
        notif = Notification(
            recipient_id=recipient_id,
            category=category,
            settlement_id=settlement_id,
            title=title,
            body=body,
            payload=payload
        )
        db.add(notif)
        await db.flush()
        return notif

    @staticmethod
    async def notify_driver(
        db: AsyncSession,
        driver_id: str,
        title: str,
        body: str,
        category: NotificationCategory = NotificationCategory.LEDGER,
        settlement_id: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Store a notification for a driver in a separate session.

        Must only be called after the ledger write has been committed. The
        caller's session is never touched, so a failure here cannot undo it.
        Returns False when the notification was skipped or failed.
        """
        if not settings.notifications_enabled:
            return False

        async def deliver():
            async with AsyncSession(db.bind, expire_on_commit=False) as notify_db:
                await NotificationService.create_notification(
                    notify_db,
                    recipient_id=driver_id,
                    title=title,
                    body=body,
                    category=category,
                    settlement_id=settlement_id,
                    payload=payload,
                )
                await notify_db.commit()

        try:
            await notification_circuit_breaker.call(deliver)
            return True
        except CircuitOpenError:
            logger.warning("Notification circuit open, skipped notification for driver %s", driver_id)
        except Exception:
            logger.exception("Failed to notify driver %s", driver_id)
        return False

    @staticmethod
    async def notify_settlement(db: AsyncSession, settlement: Settlement) -> bool:
        """Tell a driver that a payout was recorded."""
        return await NotificationService.notify_driver(
            db,
            driver_id=settlement.driver_id,
            title="Settlement processed",
            body=f"A settlement of {settlement.amount:.2f} covering "
                 f"{len(settlement.settled_entries)} ledger entries was recorded.",
            category=NotificationCategory.SETTLEMENT,
            settlement_id=settlement.id,
            payload={"amount": f"{settlement.amount:.2f}", "entry_ids": list(settlement.settled_entries)},
        )
