"""
Audit logging service for ledger writes.

Every entry append and settlement leaves an audit row naming the caller.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from backend.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    LEDGER_ENTRY_CREATED = "LEDGER_ENTRY_CREATED"
    SETTLEMENT_CREATED = "SETTLEMENT_CREATED"
    AUTO_SETTLEMENT_PROCESSED = "AUTO_SETTLEMENT_PROCESSED"
    AUTO_SETTLEMENT_SKIPPED = "AUTO_SETTLEMENT_SKIPPED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[str] = None,
    actor_role: Optional[str] = None,
    driver_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Log a ledger event to the audit log.
    
    Args:
        db: Database session (the ledger write must already be committed)
        action: Action being performed (use AuditAction constants)
        actor_id: User who performed the action (None for system actions)
        actor_role: Role claim of that user
        driver_id: Driver whose ledger was touched
        metadata: Additional context as JSON
        
    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_role=actor_role,
        action=action,
        driver_id=driver_id,
        meta_data=metadata,
    )
    
    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)
    
    return audit_log


async def log_ledger_write(
    db: AsyncSession,
    action: str,
    current_user: Dict[str, Any],
    driver_id: str,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Log a write made through the API on behalf of the authenticated caller.
    
    Args:
        db: Database session
        action: Action performed (use AuditAction constants)
        current_user: Payload from get_current_user
        driver_id: Driver whose ledger was touched
        metadata: Additional context
        
    Returns:
        Created AuditLog instance
    """
    return await log_event(
        db=db,
        action=action,
        actor_id=current_user.get("user_id"),
        actor_role=current_user.get("role"),
        driver_id=driver_id,
        metadata=metadata
    )


async def get_audit_trail(
    db: AsyncSession,
    driver_id: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering, most recent first.
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))
    
    if driver_id:
        query = query.where(AuditLog.driver_id == driver_id)
    
    if action:
        query = query.where(AuditLog.action == action)
    
    query = query.limit(limit)
    
    result = await db.execute(query)
    return list(result.scalars().all())
