"""
IFTA report schemas.
"""

from pydantic import BaseModel
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from ifta_backend.app.models.trip_leg_enums import TripLegKind, ReconciliationVerdict
from ifta_backend.app.schemas.trip_leg import JurisdictionMilesResponse


class JurisdictionTotalResponse(BaseModel):
    """Worksheet row for one jurisdiction."""
    jurisdiction_code: str
    route_miles: Decimal
    deadhead_miles: Decimal
    total_miles: Decimal


class ReportLegDetail(BaseModel):
    """Per-leg audit drill-down."""
    leg_id: int
    truck_identifier: str
    kind: TripLegKind
    created_at: datetime
    started_at: Optional[datetime]
    completed_at: datetime
    total_route_miles: Decimal
    route_miles_by_jurisdiction: List[JurisdictionMilesResponse]
    starting_odometer: Optional[Decimal]
    ending_odometer: Optional[Decimal]
    reconciliation_verdict: Optional[ReconciliationVerdict]
    supersedes_leg_id: Optional[int]


class IftaReport(BaseModel):
    """Consolidated state-by-state worksheet."""
    start_date: date
    end_date: date
    truck_identifier: Optional[str]
    jurisdictions: List[JurisdictionTotalResponse]  # Sorted by code
    total_route_miles: Decimal
    total_deadhead_miles: Decimal
    total_miles: Decimal
    jurisdiction_count: int
    leg_count: int
    legs: List[ReportLegDetail]
