"""
Audit Trail Schemas.
"""

from datetime import datetime
from typing import Optional, List, Dict, Any

from pydantic import Field

from backend.app.core.timeutils import as_utc
from backend.app.schemas.common import CamelModel


class AuditLogResponse(CamelModel):
    """Schema for one audit log row."""
    id: int
    action: str
    actor_id: Optional[str] = None
    actor_role: Optional[str] = None
    driver_id: Optional[str] = None
    meta_data: Optional[Dict[str, Any]] = Field(None, alias="metadata")
    timestamp: datetime

    @classmethod
    def from_log(cls, log) -> "AuditLogResponse":
        return cls(
            id=log.id,
            action=log.action,
            actor_id=log.actor_id,
            actor_role=log.actor_role,
            driver_id=log.driver_id,
            meta_data=log.meta_data,
            timestamp=as_utc(log.timestamp),
        )


class AuditTrail(CamelModel):
    """Schema for audit trail list."""
    logs: List[AuditLogResponse]
    total: int
