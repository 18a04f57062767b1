"""
Trip leg schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from ifta_backend.app.models.trip_leg_enums import (
    TripLegKind, TripLegStatus, ReconciliationVerdict, ReviewStatus
)


class Coordinate(BaseModel):
    """Latitude/longitude pair."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    def as_tuple(self) -> tuple:
        return self.latitude, self.longitude


OdometerReading = Optional[Decimal]


class TripLegCreate(BaseModel):
    """Schema for creating a loaded trip leg."""
    truck_identifier: str = Field(..., min_length=1, max_length=50)
    origin: Coordinate
    destination: Coordinate
    starting_odometer: OdometerReading = Field(None, ge=0, max_digits=10, decimal_places=1)
    supersedes_leg_id: Optional[int] = Field(None, gt=0, description="COMPLETED leg this one corrects")


class ReturnToTerminalCreate(BaseModel):
    """Schema for declaring 'no load, returning to terminal'."""
    truck_identifier: str = Field(..., min_length=1, max_length=50)
    current_location: Optional[Coordinate] = Field(
        None, description="Driver position; latest recorded GPS ping when omitted"
    )
    starting_odometer: OdometerReading = Field(None, ge=0, max_digits=10, decimal_places=1)


class LegStartRequest(BaseModel):
    """Driver confirmation of departure."""
    starting_odometer: OdometerReading = Field(None, ge=0, max_digits=10, decimal_places=1)


class LegCompleteRequest(BaseModel):
    """Driver acknowledgment of arrival."""
    ending_odometer: OdometerReading = Field(None, ge=0, max_digits=10, decimal_places=1)


class JurisdictionMilesResponse(BaseModel):
    """One (jurisdiction, miles) pair."""
    jurisdiction_code: str
    miles: Decimal


class ReconciliationResponse(BaseModel):
    """Odometer reconciliation verdict."""
    id: int
    leg_id: int
    verdict: ReconciliationVerdict
    odometer_delta: Decimal
    route_miles: Decimal
    variance: Optional[Decimal]
    tolerance: Decimal
    review_status: ReviewStatus
    reviewed_by: Optional[str] = None
    review_note: Optional[str] = None
    reviewed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TripLegResponse(BaseModel):
    """Trip leg response."""
    id: int
    truck_identifier: str
    kind: TripLegKind
    status: TripLegStatus
    origin: Coordinate
    destination: Coordinate
    starting_odometer: Optional[Decimal]
    ending_odometer: Optional[Decimal]
    total_route_miles: Optional[Decimal]
    total_duration_seconds: Optional[int]
    route_miles_by_jurisdiction: List[JurisdictionMilesResponse]
    error_code: Optional[str]
    error_message: Optional[str]
    supersedes_leg_id: Optional[int]
    created_at: datetime
    route_calculated_at: Optional[datetime]
    started_at: Optional[datetime]
    completed_at: Optional[datetime]

    @classmethod
    def from_leg(cls, leg) -> "TripLegResponse":
        return cls(
            id=leg.id,
            truck_identifier=leg.truck_identifier,
            kind=leg.kind,
            status=leg.status,
            origin=Coordinate(latitude=leg.origin_latitude, longitude=leg.origin_longitude),
            destination=Coordinate(latitude=leg.destination_latitude, longitude=leg.destination_longitude),
            starting_odometer=leg.starting_odometer,
            ending_odometer=leg.ending_odometer,
            total_route_miles=leg.total_route_miles,
            total_duration_seconds=leg.total_duration_seconds,
            route_miles_by_jurisdiction=[
                JurisdictionMilesResponse(jurisdiction_code=row.jurisdiction_code, miles=row.miles)
                for row in leg.jurisdiction_miles
            ],
            error_code=leg.error_code,
            error_message=leg.error_message,
            supersedes_leg_id=leg.supersedes_leg_id,
            created_at=leg.created_at,
            route_calculated_at=leg.route_calculated_at,
            started_at=leg.started_at,
            completed_at=leg.completed_at,
        )


class LegOperationResponse(BaseModel):
    """Response after a successful leg transition."""
    leg: TripLegResponse
    reconciliation: Optional[ReconciliationResponse] = None
    advisories: List[str] = []


class LocationRecord(BaseModel):
    """Schema for recording a GPS ping."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy_meters: Optional[float] = Field(None, gt=0)
    recorded_at: datetime


class LocationRecordResponse(BaseModel):
    """Response after recording a location."""
    truck_identifier: str
    location_id: int
    recorded: bool
