"""
IFTA report builder tests.
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pydantic import ValidationError
from sqlalchemy import update

from ifta_backend.app.models.trip_leg import TripLeg
from ifta_backend.app.models.trip_leg_enums import TripLegKind, ReconciliationVerdict
from ifta_backend.app.services.leg_tracker import TripLegTracker
from ifta_backend.app.services.report_builder import ReportBuilder, ReportScope, quarter_bounds
from ifta_backend.tests.here_fixtures import FakeRoutingProvider, DALLAS, OKLAHOMA_CITY, here_response

TERMINAL = (33.0198, -96.6989)

# Wichita -> Denver: KS then CO
KS_CO_RESPONSE = here_response([("KS", 321869), ("CO", 160934)])
# Oklahoma City -> terminal: OK then TX
OK_TX_RESPONSE = here_response([("OK", 160934), ("TX", 80467)])


@pytest.fixture
def tracker():
    return TripLegTracker(terminal=TERMINAL)


def today_scope(truck_identifier=None):
    today = datetime.now(timezone.utc).date()
    return ReportScope(
        start_date=today - timedelta(days=1),
        end_date=today + timedelta(days=1),
        truck_identifier=truck_identifier,
    )


async def run_leg(db, tracker, truck="TRK-101", response=None, deadhead=False,
                  starting=None, ending=None, supersedes=None):
    if deadhead:
        created = await tracker.create_return_to_terminal_leg(db, truck, current_position=OKLAHOMA_CITY)
    else:
        created = await tracker.create_leg(db, truck, DALLAS, OKLAHOMA_CITY, supersedes_leg_id=supersedes)
    leg_id = created.leg.id
    assert (await tracker.calculate_route(db, leg_id, FakeRoutingProvider(response=response))).ok
    assert (await tracker.start_leg(db, leg_id, starting_odometer=starting)).ok
    completed = await tracker.complete_leg(db, leg_id, ending_odometer=ending)
    assert completed.ok
    return completed.leg


@pytest.mark.asyncio
async def test_report_splits_route_and_deadhead(db_session, tracker):
    await run_leg(db_session, tracker)
    await run_leg(db_session, tracker, response=OK_TX_RESPONSE, deadhead=True)

    report = await ReportBuilder.get_report(db_session, today_scope())

    rows = {row.jurisdiction_code: row for row in report.jurisdictions}
    assert [row.jurisdiction_code for row in report.jurisdictions] == ["OK", "TX"]
    assert rows["TX"].route_miles == Decimal("300.0")
    assert rows["TX"].deadhead_miles == Decimal("50.0")
    assert rows["OK"].route_miles == Decimal("200.0")
    assert rows["OK"].deadhead_miles == Decimal("100.0")
    assert rows["OK"].total_miles == Decimal("300.0")
    assert report.total_route_miles == Decimal("500.0")
    assert report.total_deadhead_miles == Decimal("150.0")
    assert report.total_miles == Decimal("650.0")
    assert report.leg_count == 2
    assert report.jurisdiction_count == 2
    assert [detail.kind for detail in report.legs] == [TripLegKind.LOADED, TripLegKind.DEADHEAD_RETURN]


@pytest.mark.asyncio
async def test_only_completed_legs_are_reported(db_session, tracker):
    await run_leg(db_session, tracker)

    # FAILED leg
    failed = await tracker.create_leg(db_session, "TRK-101", DALLAS, OKLAHOMA_CITY)
    await tracker.calculate_route(db_session, failed.leg.id, FakeRoutingProvider(response={"routes": []}))
    # IN_PROGRESS leg
    in_progress = await tracker.create_leg(db_session, "TRK-101", DALLAS, OKLAHOMA_CITY)
    await tracker.calculate_route(db_session, in_progress.leg.id, FakeRoutingProvider(response=KS_CO_RESPONSE))
    await tracker.start_leg(db_session, in_progress.leg.id)

    report = await ReportBuilder.get_report(db_session, today_scope())

    assert report.leg_count == 1
    assert [row.jurisdiction_code for row in report.jurisdictions] == ["OK", "TX"]


@pytest.mark.asyncio
async def test_truck_filter(db_session, tracker):
    await run_leg(db_session, tracker, truck="TRK-101")
    await run_leg(db_session, tracker, truck="TRK-202", response=KS_CO_RESPONSE)

    report = await ReportBuilder.get_report(db_session, today_scope(truck_identifier="TRK-202"))

    assert report.truck_identifier == "TRK-202"
    assert [row.jurisdiction_code for row in report.jurisdictions] == ["CO", "KS"]
    assert report.total_route_miles == Decimal("300.0")

    fleet = await ReportBuilder.get_report(db_session, today_scope())
    assert [row.jurisdiction_code for row in fleet.jurisdictions] == ["CO", "KS", "OK", "TX"]


@pytest.mark.asyncio
async def test_date_range_uses_completion_date(db_session, tracker):
    leg = await run_leg(db_session, tracker)
    await db_session.execute(
        update(TripLeg).where(TripLeg.id == leg.id).values(completed_at=datetime(2026, 3, 31, 23, 30, tzinfo=timezone.utc))
    )
    await db_session.commit()

    q1 = await ReportBuilder.get_report(db_session, ReportScope.for_quarter("2026-Q1"))
    q2 = await ReportBuilder.get_report(db_session, ReportScope.for_quarter("2026-Q2"))

    assert q1.leg_count == 1
    assert q2.leg_count == 0
    assert q2.jurisdictions == []
    assert q2.total_miles == Decimal("0.0")


@pytest.mark.asyncio
async def test_report_is_idempotent(db_session, tracker):
    await run_leg(db_session, tracker)
    await run_leg(db_session, tracker, truck="TRK-202", response=KS_CO_RESPONSE)
    await run_leg(db_session, tracker, response=OK_TX_RESPONSE, deadhead=True)

    first = await ReportBuilder.get_report(db_session, today_scope())
    second = await ReportBuilder.get_report(db_session, today_scope())

    assert first.model_dump() == second.model_dump()


@pytest.mark.asyncio
async def test_superseded_leg_replaced_by_completed_correction(db_session, tracker):
    original = await run_leg(db_session, tracker)
    correction = await tracker.create_leg(
        db_session, "TRK-101", DALLAS, OKLAHOMA_CITY, supersedes_leg_id=original.id
    )

    # Correction still PENDING: original counts
    report = await ReportBuilder.get_report(db_session, today_scope())
    assert [detail.leg_id for detail in report.legs] == [original.id]

    leg_id = correction.leg.id
    await tracker.calculate_route(db_session, leg_id, FakeRoutingProvider(response=KS_CO_RESPONSE))
    await tracker.start_leg(db_session, leg_id)
    await tracker.complete_leg(db_session, leg_id)

    report = await ReportBuilder.get_report(db_session, today_scope())
    assert [detail.leg_id for detail in report.legs] == [leg_id]
    assert report.legs[0].supersedes_leg_id == original.id
    assert [row.jurisdiction_code for row in report.jurisdictions] == ["CO", "KS"]


@pytest.mark.asyncio
async def test_leg_detail_carries_reconciliation(db_session, tracker):
    await run_leg(db_session, tracker, starting=Decimal("1000.0"), ending=Decimal("1950.0"))

    report = await ReportBuilder.get_report(db_session, today_scope())

    detail = report.legs[0]
    assert detail.reconciliation_verdict == ReconciliationVerdict.DISCREPANCY
    assert [(row.jurisdiction_code, row.miles) for row in detail.route_miles_by_jurisdiction] == [
        ("TX", Decimal("300.0")), ("OK", Decimal("200.0"))
    ]
    # Totals come from routed miles, not the odometer
    assert report.total_route_miles == Decimal("500.0")


def test_quarter_bounds():
    assert quarter_bounds("2026-Q1") == (date(2026, 1, 1), date(2026, 3, 31))
    assert quarter_bounds("2026Q3") == (date(2026, 7, 1), date(2026, 9, 30))
    assert quarter_bounds("2024-q4") == (date(2024, 10, 1), date(2024, 12, 31))


def test_invalid_quarter():
    with pytest.raises(ValueError):
        quarter_bounds("2026-Q5")


def test_scope_rejects_inverted_range():
    with pytest.raises(ValidationError):
        ReportScope(start_date=date(2026, 7, 1), end_date=date(2026, 6, 30))


def test_scope_window_is_utc():
    start, end = ReportScope.for_quarter("2026-Q2").window

    assert start == datetime(2026, 4, 1, tzinfo=timezone.utc)
    assert end == datetime(2026, 7, 1, tzinfo=timezone.utc)
