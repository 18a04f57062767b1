"""
Mileage aggregator tests.

Aggregation must be order-independent and associative, and re-running it
must not change the output.
"""

from decimal import Decimal
from itertools import permutations

from ifta_backend.app.domain.mileage.aggregator import (
    LegMileage, aggregate_legs, merge_totals
)
from ifta_backend.app.models.trip_leg_enums import TripLegKind


def loaded(**miles):
    return LegMileage(
        kind=TripLegKind.LOADED,
        miles_by_jurisdiction={code: Decimal(value) for code, value in miles.items()}
    )


def deadhead(**miles):
    return LegMileage(
        kind=TripLegKind.DEADHEAD_RETURN,
        miles_by_jurisdiction={code: Decimal(value) for code, value in miles.items()}
    )


LEGS = [
    loaded(TX="300.0", OK="200.0"),
    loaded(OK="45.3", KS="120.7"),
    deadhead(OK="199.9", TX="0.1"),
    deadhead(NM="12.5"),
]


def test_route_and_deadhead_are_kept_apart():
    totals = aggregate_legs(LEGS)

    assert totals["TX"].route_miles == Decimal("300.0")
    assert totals["TX"].deadhead_miles == Decimal("0.1")
    assert totals["OK"].route_miles == Decimal("245.3")
    assert totals["OK"].deadhead_miles == Decimal("199.9")
    assert totals["OK"].total_miles == Decimal("445.2")
    assert totals["NM"].route_miles == Decimal("0.0")
    assert totals["NM"].deadhead_miles == Decimal("12.5")


def test_output_sorted_by_jurisdiction():
    assert list(aggregate_legs(LEGS)) == ["KS", "NM", "OK", "TX"]


def test_order_independent():
    expected = aggregate_legs(LEGS)
    for ordering in permutations(LEGS):
        assert aggregate_legs(ordering) == expected


def test_associative():
    expected = aggregate_legs(LEGS)
    for split in range(len(LEGS) + 1):
        left = aggregate_legs(LEGS[:split])
        right = aggregate_legs(LEGS[split:])
        assert merge_totals(left, right) == expected
        assert merge_totals(right, left) == expected


def test_rerun_is_idempotent():
    first = aggregate_legs(LEGS)
    second = aggregate_legs(LEGS)

    assert first == second
    # Inputs untouched
    assert LEGS[0].miles_by_jurisdiction == {"TX": Decimal("300.0"), "OK": Decimal("200.0")}


def test_no_legs():
    assert aggregate_legs([]) == {}
