"""
Span parser tests.

Covers meter -> mile conversion, jurisdiction ordering and the coverage
check against the route summary.
"""

import pytest
from decimal import Decimal

from ifta_backend.app.core.exceptions import ErrorCode
from ifta_backend.app.domain.mileage.span_parser import (
    SpanParseError, apportionment_gap, meters_to_miles, parse_route_response
)
from ifta_backend.tests.here_fixtures import TX_OK_RESPONSE, here_response


def test_texas_oklahoma_split():
    parsed = parse_route_response(TX_OK_RESPONSE)

    assert parsed.total_miles == Decimal("500.0")
    assert parsed.total_duration_seconds == 30600
    assert [span.jurisdiction_code for span in parsed.spans] == ["TX", "OK"]
    assert parsed.miles_by_jurisdiction == {"TX": Decimal("300.0"), "OK": Decimal("200.0")}


def test_meters_to_miles_rounds_to_one_decimal():
    assert meters_to_miles(Decimal(1609)) == Decimal("1.0")
    assert meters_to_miles(Decimal(161)) == Decimal("0.1")
    assert meters_to_miles(Decimal(80)) == Decimal("0.0")
    assert meters_to_miles(Decimal(0)) == Decimal("0.0")


def test_repeated_state_is_merged_in_first_appearance_order():
    response = here_response([("TX", 100000), ("OK", 50000), ("TX", 20000), ("KS", 30000)])

    parsed = parse_route_response(response)

    assert [span.jurisdiction_code for span in parsed.spans] == ["TX", "OK", "KS"]
    assert parsed.miles_by_jurisdiction["TX"] == meters_to_miles(Decimal(120000))


def test_state_codes_are_normalized():
    response = here_response([("tx", 100000), ("TX", 100000)])

    parsed = parse_route_response(response)

    assert list(parsed.miles_by_jurisdiction) == ["TX"]


def test_spans_across_sections_are_combined():
    response = {
        "routes": [{
            "sections": [
                {"summary": {"length": 100000, "duration": 3600},
                 "spans": [{"length": 100000, "stateCode": "NM"}]},
                {"summary": {"length": 60000, "duration": 1800},
                 "spans": [{"length": 40000, "stateCode": "NM"}, {"length": 20000, "stateCode": "AZ"}]},
            ]
        }]
    }

    parsed = parse_route_response(response)

    assert parsed.total_miles == meters_to_miles(Decimal(160000))
    assert parsed.total_duration_seconds == 5400
    assert parsed.miles_by_jurisdiction == {
        "NM": meters_to_miles(Decimal(140000)),
        "AZ": meters_to_miles(Decimal(20000)),
    }


def test_no_routes_is_no_route_found():
    with pytest.raises(SpanParseError) as exc_info:
        parse_route_response({"routes": []})
    assert exc_info.value.error_code == ErrorCode.NO_ROUTE_FOUND


def test_missing_routes_key_is_no_route_found():
    with pytest.raises(SpanParseError) as exc_info:
        parse_route_response({"notices": [{"title": "Route calculation failed"}]})
    assert exc_info.value.error_code == ErrorCode.NO_ROUTE_FOUND


def test_route_without_sections_is_no_route_found():
    with pytest.raises(SpanParseError) as exc_info:
        parse_route_response({"routes": [{"sections": []}]})
    assert exc_info.value.error_code == ErrorCode.NO_ROUTE_FOUND


def test_zero_length_route_is_no_route_found():
    with pytest.raises(SpanParseError) as exc_info:
        parse_route_response(here_response([], summary_length=0))
    assert exc_info.value.error_code == ErrorCode.NO_ROUTE_FOUND


def test_unannotated_spans_beyond_tolerance_are_a_coverage_gap():
    # 10% of the route has no stateCode
    response = here_response([("TX", 90000), (None, 10000)])

    with pytest.raises(SpanParseError) as exc_info:
        parse_route_response(response)

    assert exc_info.value.error_code == ErrorCode.PROVIDER_COVERAGE_GAP
    assert exc_info.value.details["coverage_gap"] == "0.1000"


def test_small_gap_within_tolerance_is_accepted():
    # 0.4% unannotated, under the 0.5% tolerance
    response = here_response([("TX", 99600), (None, 400)])

    parsed = parse_route_response(response)

    assert parsed.coverage_gap == Decimal("0.004")
    assert parsed.total_miles == meters_to_miles(Decimal(100000))


def test_gap_exactly_at_tolerance_is_accepted():
    response = here_response([("TX", 99500)], summary_length=100000)

    parsed = parse_route_response(response)

    assert parsed.coverage_gap == Decimal("0.005")


def test_tolerance_is_configurable():
    response = here_response([("TX", 99600), (None, 400)])

    with pytest.raises(SpanParseError) as exc_info:
        parse_route_response(response, coverage_tolerance=Decimal("0.001"))
    assert exc_info.value.error_code == ErrorCode.PROVIDER_COVERAGE_GAP


def test_annotated_length_above_summary_is_also_a_gap():
    response = here_response([("TX", 120000)], summary_length=100000)

    with pytest.raises(SpanParseError) as exc_info:
        parse_route_response(response)
    assert exc_info.value.error_code == ErrorCode.PROVIDER_COVERAGE_GAP


def test_rounded_split_drifting_from_rounded_total_is_a_gap():
    # Each span rounds 0.35 -> 0.4 mi; the 1689.9 m total rounds to 1.1 mi
    response = here_response([("TX", 563.3), ("OK", 563.3), ("AR", 563.3)])

    with pytest.raises(SpanParseError) as exc_info:
        parse_route_response(response)

    assert exc_info.value.error_code == ErrorCode.PROVIDER_COVERAGE_GAP
    assert exc_info.value.details["total_miles"] == "1.1"
    assert exc_info.value.details["jurisdiction_miles"] == "1.2"
    assert exc_info.value.details["coverage_gap"] == "0.0909"


def test_parsed_split_always_sums_to_total_within_tolerance():
    for response in (
        TX_OK_RESPONSE,
        here_response([("TX", 100000), ("OK", 50000), ("TX", 20000), ("KS", 30000)]),
        here_response([("TX", 99500)], summary_length=100000),
    ):
        parsed = parse_route_response(response)
        gap = apportionment_gap(parsed.total_miles, parsed.miles_by_jurisdiction.values())
        assert gap <= Decimal("0.005")


def test_apportionment_gap():
    assert apportionment_gap(Decimal("500.0"), [Decimal("300.0"), Decimal("200.0")]) == Decimal(0)
    assert apportionment_gap(Decimal("100.0"), [Decimal("99.0")]) == Decimal("0.01")
    assert apportionment_gap(Decimal("0.0"), []) == Decimal(0)
    assert apportionment_gap(Decimal("0.0"), [Decimal("0.1")]) == Decimal(1)


@pytest.mark.parametrize("response", [
    [{"routes": []}],
    "Service Unavailable",
    {"routes": {"id": "route-1"}},
    {"routes": ["route-1"]},
    {"routes": [{"sections": "section-1"}]},
    {"routes": [{"sections": [None]}]},
    {"routes": [{"sections": [{"summary": [100000, 3600], "spans": []}]}]},
    {"routes": [{"sections": [{"summary": {"length": 1000}, "spans": {"stateCode": "TX"}}]}]},
    {"routes": [{"sections": [{"summary": {"length": 1000}, "spans": [["TX", 1000]]}]}]},
])
def test_malformed_shapes_are_no_route_found(response):
    with pytest.raises(SpanParseError) as exc_info:
        parse_route_response(response)
    assert exc_info.value.error_code == ErrorCode.NO_ROUTE_FOUND


@pytest.mark.parametrize("length", ["n/a", "", "NaN", "Infinity", -500, True, {"value": 1000}])
def test_unusable_lengths_are_no_route_found(length):
    response = here_response([("TX", 1000)])
    response["routes"][0]["sections"][0]["summary"]["length"] = length

    with pytest.raises(SpanParseError) as exc_info:
        parse_route_response(response)
    assert exc_info.value.error_code == ErrorCode.NO_ROUTE_FOUND


def test_unusable_span_length_is_no_route_found():
    response = here_response([("TX", 1000)])
    response["routes"][0]["sections"][0]["spans"][0]["length"] = "n/a"

    with pytest.raises(SpanParseError) as exc_info:
        parse_route_response(response)
    assert exc_info.value.error_code == ErrorCode.NO_ROUTE_FOUND


def test_non_string_state_code_is_unannotated():
    response = here_response([("TX", 99600), (None, 400)])
    response["routes"][0]["sections"][0]["spans"][1]["stateCode"] = 48

    parsed = parse_route_response(response)

    assert list(parsed.miles_by_jurisdiction) == ["TX"]
    assert parsed.coverage_gap == Decimal("0.004")
