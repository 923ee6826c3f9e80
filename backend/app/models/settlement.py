"""
Settlement database model.

A payout that covers a batch of ledger entries.
"""

from sqlalchemy import Column, Integer, Numeric, DateTime, String, Text, JSON
from backend.app.db.session import Base
from backend.app.core.timeutils import utcnow


class Settlement(Base):
    """
    Settlement model.
    
    Created once, atomically with marking its entries settled. Never updated
    or deleted; a correction is a new entry plus a new settlement.
    """
    __tablename__ = "settlements"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    driver_id = Column(String(64), nullable=False, index=True)
    restaurant_id = Column(String(64), nullable=True, index=True)
    
    # Financials
    amount = Column(Numeric(12, 2), nullable=False)
    settled_entries = Column(JSON, nullable=False)  # ordered list of ledger entry ids
    
    # Payment details
    payment_method = Column(String(100), nullable=True)
    payment_reference = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    confirmed_by = Column(String(64), nullable=True)  # caller who recorded the payout
    
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    
    def __repr__(self):
        return f"<Settlement(id={self.id}, driver='{self.driver_id}', amount={self.amount})>"
