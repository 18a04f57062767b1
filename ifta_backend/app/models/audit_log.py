"""
Audit Log Database Model.

Tracks every trip leg transition and review decision for IFTA audits.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from ifta_backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model for tracking mileage-affecting events.
    
    Events logged:
    - LEG_CREATED
    - ROUTE_CALCULATED / ROUTE_FAILED
    - LEG_STARTED / LEG_COMPLETED
    - ODOMETER_RECONCILED / REVIEW_RESOLVED
    """
    __tablename__ = "audit_logs"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Who performed the action (None for system actions)
    actor = Column(String(100), nullable=True)
    
    # What action was performed
    action = Column(String(100), nullable=False, index=True)
    
    # Which leg the action concerns
    leg_id = Column(Integer, index=True, nullable=True)
    truck_identifier = Column(String(50), index=True, nullable=True)
    
    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)
    
    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    
    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', leg_id={self.leg_id})>"
