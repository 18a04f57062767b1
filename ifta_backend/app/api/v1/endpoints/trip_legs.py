"""
Trip Leg API Endpoints.

Drives trip legs through route calculation, start and completion.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Header, Path, Body, status
from sqlalchemy.ext.asyncio import AsyncSession

from ifta_backend.app.db.session import get_db
from ifta_backend.app.core.dependencies import get_leg_tracker, get_routing_provider
from ifta_backend.app.core.exceptions import DomainOperationError, ErrorCode
from ifta_backend.app.domain.results import OperationResult
from ifta_backend.app.schemas.trip_leg import (
    TripLegCreate, ReturnToTerminalCreate, LegStartRequest, LegCompleteRequest,
    TripLegResponse, LegOperationResponse, ReconciliationResponse
)
from ifta_backend.app.services.leg_tracker import TripLegTracker

router = APIRouter(prefix="/trip-legs", tags=["Trip Legs"])


def to_response(result: OperationResult) -> LegOperationResponse:
    """Convert an engine result to a response, or raise its domain error."""
    if not result.ok:
        details = {}
        if result.leg is not None:
            details = {"leg_id": result.leg.id, "status": result.leg.status.value}
        raise DomainOperationError(result.error_code, result.message, details=details)

    return LegOperationResponse(
        leg=TripLegResponse.from_leg(result.leg),
        reconciliation=(
            ReconciliationResponse.model_validate(result.reconciliation)
            if result.reconciliation is not None else None
        ),
        advisories=[advisory.value for advisory in result.advisories],
    )


@router.post("", response_model=LegOperationResponse, status_code=status.HTTP_201_CREATED)
async def create_leg(
    payload: TripLegCreate = Body(...),
    actor: Optional[str] = Header(None, alias="X-Actor"),
    tracker: TripLegTracker = Depends(get_leg_tracker),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a loaded trip leg (shipper -> receiver).
    
    Set `supersedes_leg_id` to correct a COMPLETED leg.
    """
    result = await tracker.create_leg(
        db,
        truck_identifier=payload.truck_identifier,
        origin=payload.origin.as_tuple(),
        destination=payload.destination.as_tuple(),
        starting_odometer=payload.starting_odometer,
        supersedes_leg_id=payload.supersedes_leg_id,
        actor=actor
    )
    return to_response(result)


@router.post("/return-to-terminal", response_model=LegOperationResponse, status_code=status.HTTP_201_CREATED)
async def create_return_to_terminal_leg(
    payload: ReturnToTerminalCreate = Body(...),
    actor: Optional[str] = Header(None, alias="X-Actor"),
    tracker: TripLegTracker = Depends(get_leg_tracker),
    db: AsyncSession = Depends(get_db)
):
    """
    Declare 'no load, returning to terminal'.
    
    The origin is the driver's current position; the destination is the
    configured terminal.
    """
    result = await tracker.create_return_to_terminal_leg(
        db,
        truck_identifier=payload.truck_identifier,
        current_position=payload.current_location.as_tuple() if payload.current_location else None,
        starting_odometer=payload.starting_odometer,
        actor=actor
    )
    return to_response(result)


@router.get("/{leg_id}", response_model=LegOperationResponse)
async def get_leg(
    leg_id: int = Path(..., description="Trip leg ID"),
    tracker: TripLegTracker = Depends(get_leg_tracker),
    db: AsyncSession = Depends(get_db)
):
    """Get a trip leg with its apportionment and reconciliation."""
    leg = await tracker.get_leg(db, leg_id)
    if leg is None:
        raise DomainOperationError(ErrorCode.LEG_NOT_FOUND, f"Trip leg {leg_id} not found")

    reconciliation = await tracker.get_reconciliation(db, leg_id)
    return to_response(OperationResult.success(leg=leg, reconciliation=reconciliation))


@router.post("/{leg_id}/calculate-route", response_model=LegOperationResponse)
async def calculate_route(
    leg_id: int = Path(..., description="Trip leg ID"),
    actor: Optional[str] = Header(None, alias="X-Actor"),
    tracker: TripLegTracker = Depends(get_leg_tracker),
    provider=Depends(get_routing_provider),
    db: AsyncSession = Depends(get_db)
):
    """
    Request the truck route for a PENDING leg.
    
    Success: leg is ROUTE_CALCULATED with its jurisdiction split frozen.
    Provider failures leave the leg FAILED; create a new leg to retry.
    """
    result = await tracker.calculate_route(db, leg_id, provider, actor=actor)
    return to_response(result)


@router.post("/{leg_id}/start", response_model=LegOperationResponse)
async def start_leg(
    leg_id: int = Path(..., description="Trip leg ID"),
    payload: Optional[LegStartRequest] = Body(None),
    actor: Optional[str] = Header(None, alias="X-Actor"),
    tracker: TripLegTracker = Depends(get_leg_tracker),
    db: AsyncSession = Depends(get_db)
):
    """Driver confirms departure (ROUTE_CALCULATED -> IN_PROGRESS)."""
    result = await tracker.start_leg(
        db, leg_id,
        starting_odometer=payload.starting_odometer if payload else None,
        actor=actor
    )
    return to_response(result)


@router.post("/{leg_id}/complete", response_model=LegOperationResponse)
async def complete_leg(
    leg_id: int = Path(..., description="Trip leg ID"),
    payload: Optional[LegCompleteRequest] = Body(None),
    actor: Optional[str] = Header(None, alias="X-Actor"),
    tracker: TripLegTracker = Depends(get_leg_tracker),
    db: AsyncSession = Depends(get_db)
):
    """
    Driver acknowledges arrival (IN_PROGRESS -> COMPLETED).
    
    Odometer discrepancies come back as advisories; completion is never
    blocked by them.
    """
    result = await tracker.complete_leg(
        db, leg_id,
        ending_odometer=payload.ending_odometer if payload else None,
        actor=actor
    )
    return to_response(result)
