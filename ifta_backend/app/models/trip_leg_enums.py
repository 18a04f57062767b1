"""
Trip leg enumerations.
"""

import enum


class TripLegKind(str, enum.Enum):
    """Kind of movement whose mileage is apportioned."""
    LOADED = "LOADED"  # Freight between shipper and receiver
    DEADHEAD_RETURN = "DEADHEAD_RETURN"  # Empty return to the terminal


class TripLegStatus(str, enum.Enum):
    """Trip leg status enumeration."""
    PENDING = "PENDING"  # Created, route not yet calculated
    ROUTE_CALCULATED = "ROUTE_CALCULATED"  # Apportionment committed
    IN_PROGRESS = "IN_PROGRESS"  # Driver confirmed start
    COMPLETED = "COMPLETED"  # Immutable report input
    FAILED = "FAILED"  # Terminal, excluded from aggregation


class ReconciliationVerdict(str, enum.Enum):
    """Odometer reconciliation verdict."""
    MATCH = "MATCH"
    DISCREPANCY = "DISCREPANCY"
    INVALID_ODOMETER = "INVALID_ODOMETER"  # Negative odometer delta


class ReviewStatus(str, enum.Enum):
    """Human review state of a reconciliation."""
    NOT_REQUIRED = "NOT_REQUIRED"
    PENDING_REVIEW = "PENDING_REVIEW"
    RESOLVED = "RESOLVED"
