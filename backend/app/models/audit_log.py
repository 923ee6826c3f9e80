"""
Audit Log Database Model.

Tracks every write against the driver ledger.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from backend.app.db.session import Base
from backend.app.core.timeutils import utcnow


class AuditLog(Base):
    """
    Audit log model for ledger writes.
    
    Events logged:
    - LEDGER_ENTRY_CREATED
    - SETTLEMENT_CREATED
    - AUTO_SETTLEMENT_PROCESSED / AUTO_SETTLEMENT_SKIPPED
    """
    __tablename__ = "audit_logs"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Who performed the action (None for system actions)
    actor_id = Column(String(64), index=True, nullable=True)
    actor_role = Column(String(32), nullable=True)
    
    # What action was performed
    action = Column(String(100), nullable=False, index=True)
    
    # Driver whose ledger was touched
    driver_id = Column(String(64), index=True, nullable=True)
    
    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)
    
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    
    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_id}, driver={self.driver_id})>"
