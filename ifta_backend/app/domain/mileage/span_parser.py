"""
Jurisdiction Span Parser (Domain Logic).

Turns a HERE Routing v8 response for one origin -> destination request into
a trip summary and an ordered per-jurisdiction mileage split.

Pure: no I/O. The network call lives in services/routing_provider.py.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel

from ifta_backend.app.core.exceptions import ErrorCode

METERS_TO_MILES = Decimal("0.000621371")
ONE_DECIMAL = Decimal("0.1")
DEFAULT_COVERAGE_TOLERANCE = Decimal("0.005")


class SpanParseError(Exception):
    """Raised when a provider response cannot be apportioned."""

    def __init__(self, error_code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(message)


class JurisdictionSpan(BaseModel):
    """Miles driven in one jurisdiction."""
    jurisdiction_code: str
    miles: Decimal

    class Config:
        frozen = True


class ParsedRoute(BaseModel):
    """Apportionment-ready view of a provider route."""
    total_miles: Decimal
    total_duration_seconds: int
    spans: List[JurisdictionSpan]
    coverage_gap: Decimal  # Fraction of summary length without a jurisdiction

    class Config:
        frozen = True

    @property
    def miles_by_jurisdiction(self) -> Dict[str, Decimal]:
        return {span.jurisdiction_code: span.miles for span in self.spans}


def meters_to_miles(meters: Decimal) -> Decimal:
    """Convert meters to miles, rounded half-up to one decimal place."""
    return (meters * METERS_TO_MILES).quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP)


def apportionment_gap(total_miles: Decimal, jurisdiction_miles: Iterable[Decimal]) -> Decimal:
    """
    Relative disagreement between a stored total and the sum of its split.

    A zero total only agrees with a zero sum.
    """
    apportioned = sum(jurisdiction_miles, Decimal(0))
    if total_miles <= 0:
        return Decimal(0) if apportioned == total_miles else Decimal(1)
    return abs(apportioned - total_miles) / total_miles


def _unusable(message: str) -> SpanParseError:
    return SpanParseError(ErrorCode.NO_ROUTE_FOUND, message)


def _as_decimal(value: Any, field: str) -> Decimal:
    """Read a non-negative number from the response; anything else is unusable."""
    if value is None:
        return Decimal(0)
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise _unusable(f"Routing provider returned a non-numeric {field}: {value!r}")
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        raise _unusable(f"Routing provider returned a non-numeric {field}: {value!r}") from None
    if not number.is_finite() or number < 0:
        raise _unusable(f"Routing provider returned an invalid {field}: {value!r}")
    return number


def _as_list(value: Any, field: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise _unusable(f"Routing provider returned malformed {field}")
    return value


def _as_mapping(value: Any, field: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise _unusable(f"Routing provider returned malformed {field}")
    return value


def parse_route_response(
    response: Mapping[str, Any],
    coverage_tolerance: Decimal = DEFAULT_COVERAGE_TOLERANCE,
) -> ParsedRoute:
    """
    Parse a routing provider response into a ParsedRoute.

    Only the first route is used; all of its sections are walked in order.
    Summary length/duration are authoritative for totals. Span lengths are
    used only to split the total among jurisdictions.

    Args:
        response: Decoded provider JSON
        coverage_tolerance: Max allowed |summary - annotated| / summary

    Returns:
        ParsedRoute

    Raises:
        SpanParseError: NO_ROUTE_FOUND or PROVIDER_COVERAGE_GAP
    """
    if not isinstance(response, Mapping):
        raise _unusable("Routing provider returned a malformed response")

    routes = _as_list(response.get("routes"), "routes")
    if not routes:
        raise SpanParseError(ErrorCode.NO_ROUTE_FOUND, "Routing provider returned no routes")

    sections = _as_list(_as_mapping(routes[0], "route").get("sections"), "sections")
    if not sections:
        raise SpanParseError(ErrorCode.NO_ROUTE_FOUND, "Routing provider returned a route without sections")

    summary_meters = Decimal(0)
    duration_seconds = Decimal(0)
    annotated_meters = Decimal(0)
    meters_by_code: Dict[str, Decimal] = {}  # insertion order = first appearance

    for section in sections:
        section = _as_mapping(section, "section")
        summary = _as_mapping(section.get("summary"), "section summary")
        summary_meters += _as_decimal(summary.get("length"), "section length")
        duration_seconds += _as_decimal(summary.get("duration"), "section duration")

        for span in _as_list(section.get("spans"), "spans"):
            span = _as_mapping(span, "span")
            code = span.get("stateCode")
            length = _as_decimal(span.get("length"), "span length")
            if not isinstance(code, str) or not code.strip() or length <= 0:
                continue
            code = code.strip().upper()
            meters_by_code[code] = meters_by_code.get(code, Decimal(0)) + length
            annotated_meters += length

    if summary_meters <= 0:
        raise SpanParseError(ErrorCode.NO_ROUTE_FOUND, "Routing provider returned a zero-length route")

    coverage_gap = abs(summary_meters - annotated_meters) / summary_meters
    if coverage_gap > coverage_tolerance:
        raise SpanParseError(
            ErrorCode.PROVIDER_COVERAGE_GAP,
            f"Jurisdiction spans cover {annotated_meters}m of a {summary_meters}m route",
            details={
                "summary_meters": str(summary_meters),
                "annotated_meters": str(annotated_meters),
                "coverage_gap": str(coverage_gap.quantize(Decimal("0.0001"))),
            },
        )

    total_miles = meters_to_miles(summary_meters)
    spans = [
        JurisdictionSpan(jurisdiction_code=code, miles=meters_to_miles(meters))
        for code, meters in meters_by_code.items()
    ]

    # Rounding each jurisdiction separately can drift away from the rounded total
    rounded_gap = apportionment_gap(total_miles, [span.miles for span in spans])
    if rounded_gap > coverage_tolerance:
        rounded_sum = sum((span.miles for span in spans), Decimal(0))
        raise SpanParseError(
            ErrorCode.PROVIDER_COVERAGE_GAP,
            f"Rounded jurisdiction miles sum to {rounded_sum} of a {total_miles} mile route",
            details={
                "total_miles": str(total_miles),
                "jurisdiction_miles": str(rounded_sum),
                "coverage_gap": str(rounded_gap.quantize(Decimal("0.0001"))),
            },
        )

    return ParsedRoute(
        total_miles=total_miles,
        total_duration_seconds=int(duration_seconds),
        spans=spans,
        coverage_gap=coverage_gap,
    )
