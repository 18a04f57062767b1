"""
Odometer Review Queue API Endpoints.

Flagged odometer verdicts are reviewed by office staff.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Path, Query, Body
from sqlalchemy.ext.asyncio import AsyncSession

from ifta_backend.app.db.session import get_db
from ifta_backend.app.core.exceptions import DomainOperationError
from ifta_backend.app.schemas.reconciliation import ReviewQueueResponse, ReviewResolveRequest
from ifta_backend.app.schemas.trip_leg import ReconciliationResponse
from ifta_backend.app.services.review_queue import ReviewQueue

router = APIRouter(prefix="/reconciliations", tags=["Odometer Reviews"])


@router.get("/review-queue", response_model=ReviewQueueResponse)
async def list_review_queue(
    truck_identifier: Optional[str] = Query(None, max_length=50),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db)
):
    """List odometer reconciliations waiting for review, oldest first."""
    reviews = await ReviewQueue.list_pending(db, truck_identifier=truck_identifier, limit=limit)
    return ReviewQueueResponse(
        reviews=[ReconciliationResponse.model_validate(review) for review in reviews],
        total=len(reviews)
    )


@router.post("/{reconciliation_id}/resolve", response_model=ReconciliationResponse)
async def resolve_review(
    reconciliation_id: int = Path(..., description="Reconciliation ID"),
    payload: ReviewResolveRequest = Body(...),
    db: AsyncSession = Depends(get_db)
):
    """Resolve a pending review. Mileage is not changed."""
    result = await ReviewQueue.resolve(
        db,
        reconciliation_id=reconciliation_id,
        reviewed_by=payload.reviewed_by,
        note=payload.note
    )
    if not result.ok:
        raise DomainOperationError(
            result.error_code,
            result.message,
            details={"reconciliation_id": reconciliation_id}
        )
    return ReconciliationResponse.model_validate(result.reconciliation)
