"""
Odometer Reconciliation database model.

Verdict appended to a completed leg. Never alters the leg's mileage.
"""

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, Enum, Text
from sqlalchemy.sql import func
from ifta_backend.app.db.session import Base
from ifta_backend.app.models.trip_leg_enums import ReconciliationVerdict, ReviewStatus


class OdometerReconciliation(Base):
    """
    Odometer Reconciliation model.
    
    One row per reconciled leg. Non-MATCH verdicts wait in the review queue
    until someone resolves them.
    """
    __tablename__ = "odometer_reconciliations"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    leg_id = Column(Integer, ForeignKey('trip_legs.id'), nullable=False, unique=True, index=True)
    
    verdict = Column(Enum(ReconciliationVerdict), nullable=False, index=True)
    odometer_delta = Column(Numeric(10, 1), nullable=False)
    route_miles = Column(Numeric(10, 1), nullable=False)
    variance = Column(Numeric(10, 4), nullable=True)  # None when delta is negative
    tolerance = Column(Numeric(6, 4), nullable=False)
    
    # Review queue
    review_status = Column(Enum(ReviewStatus), default=ReviewStatus.NOT_REQUIRED, nullable=False, index=True)
    reviewed_by = Column(String(100), nullable=True)
    review_note = Column(Text, nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Load server-side defaults at insert time (async sessions cannot lazy-load)
    __mapper_args__ = {"eager_defaults": True}

    def __repr__(self):
        return f"<OdometerReconciliation(leg_id={self.leg_id}, verdict='{self.verdict.value}')>"
