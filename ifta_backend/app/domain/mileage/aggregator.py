"""
Mileage Aggregator (Domain Logic).

Folds trip leg apportionments into per-jurisdiction route/deadhead totals.
Decimal sums keep the fold exact, so it is order-independent and
associative, and re-running it over the same legs gives the same output.
"""

from decimal import Decimal
from typing import Dict, Iterable, Mapping

from pydantic import BaseModel

from ifta_backend.app.models.trip_leg_enums import TripLegKind


class JurisdictionTotal(BaseModel):
    """Reporting view of one jurisdiction."""
    jurisdiction_code: str
    route_miles: Decimal = Decimal("0.0")
    deadhead_miles: Decimal = Decimal("0.0")

    class Config:
        frozen = True

    @property
    def total_miles(self) -> Decimal:
        return self.route_miles + self.deadhead_miles


class LegMileage(BaseModel):
    """The part of a trip leg the aggregator reads."""
    kind: TripLegKind
    miles_by_jurisdiction: Dict[str, Decimal]

    class Config:
        frozen = True

    @classmethod
    def from_leg(cls, leg) -> "LegMileage":
        return cls(kind=leg.kind, miles_by_jurisdiction=dict(leg.route_miles_by_jurisdiction))


def aggregate_legs(legs: Iterable[LegMileage]) -> Dict[str, JurisdictionTotal]:
    """
    Aggregate legs into jurisdiction totals.

    LOADED legs add to route miles, DEADHEAD_RETURN legs to deadhead miles.
    Inputs are not mutated.

    Returns:
        Mapping jurisdiction code -> JurisdictionTotal, sorted by code
    """
    route: Dict[str, Decimal] = {}
    deadhead: Dict[str, Decimal] = {}

    for leg in legs:
        bucket = deadhead if leg.kind == TripLegKind.DEADHEAD_RETURN else route
        for code, miles in leg.miles_by_jurisdiction.items():
            bucket[code] = bucket.get(code, Decimal(0)) + Decimal(miles)

    return _build_totals(route, deadhead)


def merge_totals(
    left: Mapping[str, JurisdictionTotal],
    right: Mapping[str, JurisdictionTotal],
) -> Dict[str, JurisdictionTotal]:
    """Combine two partial aggregates into one."""
    route: Dict[str, Decimal] = {}
    deadhead: Dict[str, Decimal] = {}

    for totals in (left, right):
        for code, total in totals.items():
            route[code] = route.get(code, Decimal(0)) + total.route_miles
            deadhead[code] = deadhead.get(code, Decimal(0)) + total.deadhead_miles

    return _build_totals(route, deadhead)


def _build_totals(route: Mapping[str, Decimal], deadhead: Mapping[str, Decimal]) -> Dict[str, JurisdictionTotal]:
    codes = sorted(set(route) | set(deadhead))
    return {
        code: JurisdictionTotal(
            jurisdiction_code=code,
            route_miles=route.get(code, Decimal("0.0")),
            deadhead_miles=deadhead.get(code, Decimal("0.0")),
        )
        for code in codes
    }
