"""
Live Location Source.

Supplies a truck's current position from the latest recorded GPS ping.
Accuracy and staleness are not validated here.
"""

from datetime import datetime
from typing import Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from ifta_backend.app.models.truck_location import TruckLocation


class LiveLocationSource:
    """Reads and records truck GPS pings."""

    @staticmethod
    async def record_location(
        db: AsyncSession,
        truck_identifier: str,
        latitude: float,
        longitude: float,
        recorded_at: datetime,
        accuracy_meters: Optional[float] = None
    ) -> TruckLocation:
        """Store a GPS ping (caller commits)."""
        location = TruckLocation(
            truck_identifier=truck_identifier,
            latitude=latitude,
            longitude=longitude,
            accuracy_meters=accuracy_meters,
            recorded_at=recorded_at
        )
        db.add(location)
        await db.flush()
        return location

    @staticmethod
    async def current_position(
        db: AsyncSession,
        truck_identifier: str
    ) -> Optional[Tuple[float, float]]:
        """
        Latest known (latitude, longitude) of a truck.
        
        Returns:
            Coordinate pair, or None if the truck never reported a location
        """
        result = await db.execute(
            select(TruckLocation)
            .where(TruckLocation.truck_identifier == truck_identifier)
            .order_by(TruckLocation.recorded_at.desc(), TruckLocation.id.desc())
            .limit(1)
        )
        location = result.scalar_one_or_none()
        
        if location is None:
            return None
        return location.latitude, location.longitude
