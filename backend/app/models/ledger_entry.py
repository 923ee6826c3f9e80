"""
Ledger Entry database model.

Append-only record of a driver's earnings, fees, debts and payout markers.
"""

from sqlalchemy import Column, Integer, Numeric, ForeignKey, DateTime, Enum, String, Boolean, JSON, Index
from backend.app.db.session import Base
from backend.app.core.timeutils import utcnow
from backend.app.models.ledger_enums import LedgerEntryType


class LedgerEntry(Base):
    """
    Ledger Entry model.
    
    amount and driver_id never change after insert; corrections are new entries.
    The only transition is unsettled -> settled, performed by the settlement engine
    together with settled_at and settlement_id.
    """
    __tablename__ = "ledger_entries"
    __table_args__ = (
        Index("ix_ledger_entries_driver_settled", "driver_id", "is_settled"),
    )
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Ownership; restaurant_id scopes the entry to one driver-restaurant ledger
    driver_id = Column(String(64), nullable=False, index=True)
    restaurant_id = Column(String(64), nullable=True, index=True)
    order_id = Column(String(64), nullable=True, index=True)
    
    # Entry details
    entry_type = Column("type", Enum(LedgerEntryType, values_callable=lambda e: [m.value for m in e]), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(String(255), nullable=False)
    meta_data = Column("metadata", JSON, nullable=True)
    
    # Settlement state
    is_settled = Column(Boolean, default=False, nullable=False)
    settled_at = Column(DateTime(timezone=True), nullable=True)
    settlement_id = Column(Integer, ForeignKey('settlements.id'), nullable=True, index=True)
    
    # Timestamps (Immutable - no updated_at)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    
    def __repr__(self):
        return f"<LedgerEntry(id={self.id}, driver='{self.driver_id}', type='{self.entry_type.value}', amount={self.amount})>"
