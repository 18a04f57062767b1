"""
Truck Location API Endpoints.

Drivers' devices report GPS pings; the latest one is the live location
used as a return-to-terminal origin.
"""

from fastapi import APIRouter, Depends, Path, Body, status
from sqlalchemy.ext.asyncio import AsyncSession

from ifta_backend.app.db.session import get_db
from ifta_backend.app.schemas.trip_leg import LocationRecord, LocationRecordResponse
from ifta_backend.app.services.location_source import LiveLocationSource

router = APIRouter(prefix="/trucks", tags=["Truck Locations"])


@router.post(
    "/{truck_identifier}/locations",
    response_model=LocationRecordResponse,
    status_code=status.HTTP_201_CREATED
)
async def record_location(
    truck_identifier: str = Path(..., min_length=1, max_length=50, description="Truck/unit number"),
    location: LocationRecord = Body(...),
    db: AsyncSession = Depends(get_db)
):
    """Record a GPS ping for a truck."""
    truck_location = await LiveLocationSource.record_location(
        db,
        truck_identifier=truck_identifier,
        latitude=location.latitude,
        longitude=location.longitude,
        accuracy_meters=location.accuracy_meters,
        recorded_at=location.recorded_at
    )
    await db.commit()

    return LocationRecordResponse(
        truck_identifier=truck_identifier,
        location_id=truck_location.id,
        recorded=True
    )
