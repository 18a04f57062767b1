"""
Trip Leg database models.

A trip leg is one directional movement whose mileage is apportioned across
jurisdictions. Its apportionment map is stored as an ordered list of rows.
"""

from sqlalchemy import Column, Integer, String, Float, Numeric, ForeignKey, DateTime, Enum, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ifta_backend.app.db.session import Base
from ifta_backend.app.models.trip_leg_enums import TripLegKind, TripLegStatus


class TripLeg(Base):
    """
    Trip Leg model.
    
    Status and route fields are written only by the trip leg tracker, always
    through a compare-and-swap on `status`. Once COMPLETED the row is never
    updated again; corrections are new legs pointing at it via
    `supersedes_leg_id`.
    """
    __tablename__ = "trip_legs"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # IFTA reporting key (free text, not a fleet registry FK)
    truck_identifier = Column(String(50), nullable=False, index=True)
    kind = Column(Enum(TripLegKind), nullable=False, index=True)
    
    # Coordinates
    origin_latitude = Column(Float, nullable=False)
    origin_longitude = Column(Float, nullable=False)
    destination_latitude = Column(Float, nullable=False)
    destination_longitude = Column(Float, nullable=False)
    
    # Driver-supplied odometer readings (miles), reconciliation only
    starting_odometer = Column(Numeric(10, 1), nullable=True)
    ending_odometer = Column(Numeric(10, 1), nullable=True)
    
    # Provider trip summary (authoritative totals)
    total_route_miles = Column(Numeric(10, 1), nullable=True)
    total_duration_seconds = Column(Integer, nullable=True)
    
    # Status
    status = Column(Enum(TripLegStatus), default=TripLegStatus.PENDING, nullable=False, index=True)
    error_code = Column(String(50), nullable=True)
    error_message = Column(Text, nullable=True)
    
    # In-flight provider request claim (at most one per leg)
    route_request_id = Column(String(36), nullable=True)
    route_requested_at = Column(DateTime(timezone=True), nullable=True)
    
    # Compensating correction of a COMPLETED leg
    supersedes_leg_id = Column(Integer, ForeignKey('trip_legs.id'), nullable=True, index=True)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    route_calculated_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True, index=True)
    
    jurisdiction_miles = relationship(
        "TripLegJurisdictionMiles",
        order_by="TripLegJurisdictionMiles.sequence",
        lazy="selectin",
        cascade="all, delete-orphan",
    )
    
    @property
    def route_miles_by_jurisdiction(self) -> dict:
        """Ordered jurisdiction code -> miles mapping."""
        return {row.jurisdiction_code: row.miles for row in self.jurisdiction_miles}
    
    def __repr__(self):
        return f"<TripLeg(id={self.id}, truck='{self.truck_identifier}', kind='{self.kind.value}', status='{self.status.value}')>"


class TripLegJurisdictionMiles(Base):
    """
    One (jurisdiction, miles) pair of a leg's apportionment.
    
    `sequence` is the first-appearance order of the jurisdiction along the
    route, which keeps audit serialization deterministic.
    """
    __tablename__ = "trip_leg_jurisdiction_miles"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    leg_id = Column(Integer, ForeignKey('trip_legs.id', ondelete="CASCADE"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    jurisdiction_code = Column(String(10), nullable=False, index=True)
    miles = Column(Numeric(10, 1), nullable=False)
    
    __table_args__ = (
        UniqueConstraint('leg_id', 'sequence', name='uq_leg_jurisdiction_sequence'),
        UniqueConstraint('leg_id', 'jurisdiction_code', name='uq_leg_jurisdiction_code'),
    )
    
    def __repr__(self):
        return f"<TripLegJurisdictionMiles(leg_id={self.leg_id}, {self.jurisdiction_code}={self.miles})>"
