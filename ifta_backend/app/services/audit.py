"""
Audit logging service for mileage-affecting events.

Entries are added to the caller's session so they commit (or roll back)
together with the change they describe.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from ifta_backend.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    LEG_CREATED = "LEG_CREATED"
    ROUTE_CALCULATED = "ROUTE_CALCULATED"
    ROUTE_FAILED = "ROUTE_FAILED"
    LEG_STARTED = "LEG_STARTED"
    LEG_COMPLETED = "LEG_COMPLETED"
    ODOMETER_RECONCILED = "ODOMETER_RECONCILED"
    REVIEW_RESOLVED = "REVIEW_RESOLVED"


async def log_event(
    db: AsyncSession,
    action: str,
    leg_id: Optional[int] = None,
    truck_identifier: Optional[str] = None,
    actor: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Record an audit event in the current transaction.
    
    Args:
        db: Database session (caller commits)
        action: Action being performed (use AuditAction constants)
        leg_id: Trip leg concerned
        truck_identifier: Truck the leg belongs to
        actor: Who performed the action (None for system actions)
        metadata: Additional context as JSON
        
    Returns:
        Pending AuditLog instance
    """
    audit_log = AuditLog(
        action=action,
        leg_id=leg_id,
        truck_identifier=truck_identifier,
        actor=actor,
        meta_data=metadata
    )
    
    db.add(audit_log)
    await db.flush()
    
    return audit_log


async def get_leg_audit_trail(
    db: AsyncSession,
    leg_id: int,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve the audit trail of one trip leg, oldest first.
    """
    query = (
        select(AuditLog)
        .where(AuditLog.leg_id == leg_id)
        .order_by(AuditLog.timestamp, AuditLog.id)
        .limit(limit)
    )
    
    result = await db.execute(query)
    return result.scalars().all()
