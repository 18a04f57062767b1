"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from ifta_backend.app.api.v1.endpoints import (
    trip_legs, truck_locations, reports, reconciliations
)

router = APIRouter()

# Trip leg lifecycle
router.include_router(trip_legs.router)

# Live location pings
router.include_router(truck_locations.router)

# IFTA worksheet
router.include_router(reports.router)

# Odometer review queue
router.include_router(reconciliations.router)
