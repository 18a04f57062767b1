"""
Review queue schemas.
"""

from pydantic import BaseModel, Field
from typing import List, Optional

from ifta_backend.app.schemas.trip_leg import ReconciliationResponse


class ReviewQueueResponse(BaseModel):
    """Pending odometer reviews."""
    reviews: List[ReconciliationResponse]
    total: int


class ReviewResolveRequest(BaseModel):
    """Reviewer decision on a flagged leg."""
    reviewed_by: str = Field(..., min_length=1, max_length=100)
    note: Optional[str] = Field(None, max_length=2000)
