"""
Odometer reconciler tests.
"""

from decimal import Decimal

from ifta_backend.app.domain.mileage.odometer import reconcile_odometer
from ifta_backend.app.models.trip_leg_enums import ReconciliationVerdict


def test_small_variance_matches():
    # 510 odometer miles vs 500 routed: 2%
    check = reconcile_odometer(Decimal("120000.0"), Decimal("120510.0"), Decimal("500.0"))

    assert check.verdict == ReconciliationVerdict.MATCH
    assert check.odometer_delta == Decimal("510.0")
    assert check.variance == Decimal("0.0200")
    assert not check.needs_review


def test_large_variance_is_discrepancy():
    # 950 odometer miles vs 500 routed: 90%
    check = reconcile_odometer(Decimal("120000.0"), Decimal("120950.0"), Decimal("500.0"))

    assert check.verdict == ReconciliationVerdict.DISCREPANCY
    assert check.variance == Decimal("0.9000")
    assert check.needs_review


def test_variance_exactly_at_tolerance_matches():
    check = reconcile_odometer(Decimal("1000.0"), Decimal("1550.0"), Decimal("500.0"))

    assert check.variance == Decimal("0.1000")
    assert check.verdict == ReconciliationVerdict.MATCH


def test_short_odometer_delta_is_also_checked():
    check = reconcile_odometer(Decimal("1000.0"), Decimal("1400.0"), Decimal("500.0"))

    assert check.verdict == ReconciliationVerdict.DISCREPANCY
    assert check.variance == Decimal("0.2000")


def test_swapped_readings_are_invalid():
    check = reconcile_odometer(Decimal("120510.0"), Decimal("120000.0"), Decimal("500.0"))

    assert check.verdict == ReconciliationVerdict.INVALID_ODOMETER
    assert check.odometer_delta == Decimal("-510.0")
    assert check.variance is None
    assert check.needs_review


def test_missing_reading_skips_reconciliation():
    assert reconcile_odometer(None, Decimal("120510.0"), Decimal("500.0")) is None
    assert reconcile_odometer(Decimal("120000.0"), None, Decimal("500.0")) is None


def test_custom_tolerance():
    check = reconcile_odometer(
        Decimal("0.0"), Decimal("510.0"), Decimal("500.0"), tolerance=Decimal("0.01")
    )

    assert check.verdict == ReconciliationVerdict.DISCREPANCY
    assert check.tolerance == Decimal("0.01")
