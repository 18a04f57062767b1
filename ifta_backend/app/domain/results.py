"""
Structured operation results.

Engine operations return these instead of raising for expected domain
conditions (stale state, coverage gaps, discrepancies).
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field

from ifta_backend.app.core.exceptions import ErrorCode


class OperationResult(BaseModel):
    """Outcome of one engine operation."""
    ok: bool
    error_code: Optional[ErrorCode] = None
    message: Optional[str] = None
    leg: Optional[Any] = None  # TripLeg snapshot
    reconciliation: Optional[Any] = None  # OdometerReconciliation
    advisories: List[ErrorCode] = Field(default_factory=list)

    class Config:
        arbitrary_types_allowed = True

    @classmethod
    def success(cls, leg=None, reconciliation=None, advisories: Optional[List[ErrorCode]] = None) -> "OperationResult":
        return cls(ok=True, leg=leg, reconciliation=reconciliation, advisories=advisories or [])

    @classmethod
    def failure(cls, error_code: ErrorCode, message: str, leg=None, reconciliation=None) -> "OperationResult":
        return cls(ok=False, error_code=error_code, message=message, leg=leg, reconciliation=reconciliation)
