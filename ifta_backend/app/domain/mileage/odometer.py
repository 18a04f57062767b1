"""
Odometer Reconciler (Domain Logic).

Cross-checks routed miles against the driver's odometer delta. The verdict
is a data-quality signal only; routed mileage stays authoritative.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from ifta_backend.app.models.trip_leg_enums import ReconciliationVerdict

DEFAULT_VARIANCE_TOLERANCE = Decimal("0.10")


class OdometerCheck(BaseModel):
    """Outcome of reconciling one leg."""
    verdict: ReconciliationVerdict
    odometer_delta: Decimal
    route_miles: Decimal
    variance: Optional[Decimal]  # None for INVALID_ODOMETER
    tolerance: Decimal

    class Config:
        frozen = True

    @property
    def needs_review(self) -> bool:
        return self.verdict != ReconciliationVerdict.MATCH


def reconcile_odometer(
    starting_odometer: Optional[Decimal],
    ending_odometer: Optional[Decimal],
    total_route_miles: Decimal,
    tolerance: Decimal = DEFAULT_VARIANCE_TOLERANCE,
) -> Optional[OdometerCheck]:
    """
    Reconcile odometer readings against routed miles.

    variance = |delta - route_miles| / route_miles
    MATCH when variance <= tolerance, DISCREPANCY otherwise,
    INVALID_ODOMETER when ending < starting.

    Returns:
        OdometerCheck, or None when either reading is missing (skipped)
    """
    if starting_odometer is None or ending_odometer is None:
        return None

    route_miles = Decimal(total_route_miles)
    delta = Decimal(ending_odometer) - Decimal(starting_odometer)

    if delta < 0:
        return OdometerCheck(
            verdict=ReconciliationVerdict.INVALID_ODOMETER,
            odometer_delta=delta,
            route_miles=route_miles,
            variance=None,
            tolerance=tolerance,
        )

    if route_miles <= 0:
        # No routed distance to compare against; only a zero delta agrees
        variance = Decimal(0) if delta == 0 else Decimal(1)
    else:
        variance = abs(delta - route_miles) / route_miles

    verdict = ReconciliationVerdict.MATCH if variance <= tolerance else ReconciliationVerdict.DISCREPANCY

    return OdometerCheck(
        verdict=verdict,
        odometer_delta=delta,
        route_miles=route_miles,
        variance=variance.quantize(Decimal("0.0001")),
        tolerance=tolerance,
    )
