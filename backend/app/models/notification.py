"""
Driver Notification Database Model.

Messages produced by ledger events; a push/in-app channel reads from here.
"""

import enum

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, JSON, Enum, ForeignKey
from backend.app.db.session import Base
from backend.app.core.timeutils import utcnow


class NotificationCategory(str, enum.Enum):
    SETTLEMENT = "settlement"
    LEDGER = "ledger"


class Notification(Base):
    """
    Notification addressed to a driver.
    
    Written in its own transaction after the ledger change committed, so a
    missing notification never implies a missing ledger write.
    """
    __tablename__ = "notifications"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Recipient (driver id from the marketplace)
    recipient_id = Column(String(64), nullable=False, index=True)
    
    category = Column(Enum(NotificationCategory, values_callable=lambda e: [m.value for m in e]), nullable=False)
    settlement_id = Column(Integer, ForeignKey('settlements.id'), nullable=True)
    
    # Content
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    payload = Column(JSON, nullable=True)
    
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    
    def __repr__(self):
        return f"<Notification(id={self.id}, recipient='{self.recipient_id}', category='{self.category.value}')>"
