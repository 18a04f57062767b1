"""
IFTA Report Builder.

Builds the state-by-state worksheet for a reporting scope.
READ-ONLY: never writes, safe to run repeatedly and concurrently.
"""

import re
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, model_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from ifta_backend.app.domain.mileage.aggregator import LegMileage, aggregate_legs
from ifta_backend.app.models.odometer_reconciliation import OdometerReconciliation
from ifta_backend.app.models.trip_leg import TripLeg
from ifta_backend.app.models.trip_leg_enums import TripLegStatus
from ifta_backend.app.schemas.report import (
    IftaReport, JurisdictionTotalResponse, ReportLegDetail
)
from ifta_backend.app.schemas.trip_leg import JurisdictionMilesResponse

QUARTER_PATTERN = re.compile(r"^(\d{4})-?Q([1-4])$", re.IGNORECASE)


class ReportScope(BaseModel):
    """Completion-date range (inclusive, UTC) and optional truck filter."""
    start_date: date
    end_date: date
    truck_identifier: Optional[str] = None

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    @classmethod
    def for_quarter(cls, quarter: str, truck_identifier: Optional[str] = None) -> "ReportScope":
        """Scope covering an IFTA filing quarter, e.g. '2026-Q3'."""
        start, end = quarter_bounds(quarter)
        return cls(start_date=start, end_date=end, truck_identifier=truck_identifier)

    @property
    def window(self) -> Tuple[datetime, datetime]:
        """Half-open [start, end) datetime window."""
        return (
            datetime.combine(self.start_date, time.min, tzinfo=timezone.utc),
            datetime.combine(self.end_date + timedelta(days=1), time.min, tzinfo=timezone.utc),
        )


def quarter_bounds(quarter: str) -> Tuple[date, date]:
    """
    Resolve '2026-Q3' (or '2026Q3') to its first and last day.

    Raises:
        ValueError: Unrecognized quarter label
    """
    match = QUARTER_PATTERN.match(quarter.strip())
    if not match:
        raise ValueError(f"Invalid quarter '{quarter}', expected e.g. 2026-Q3")
    year, q = int(match.group(1)), int(match.group(2))
    start = date(year, 3 * q - 2, 1)
    next_start = date(year + 1, 1, 1) if q == 4 else date(year, 3 * q + 1, 1)
    return start, next_start - timedelta(days=1)


class ReportBuilder:

    @staticmethod
    async def fetch_completed_legs(db: AsyncSession, scope: ReportScope) -> List[TripLeg]:
        """
        COMPLETED legs in scope, oldest completion first.

        Legs superseded by a COMPLETED correction are left out; the
        correction itself is reported instead.
        """
        window_start, window_end = scope.window
        correction = aliased(TripLeg)
        superseded = (
            select(correction.id)
            .where(
                correction.supersedes_leg_id == TripLeg.id,
                correction.status == TripLegStatus.COMPLETED,
            )
            .exists()
        )

        stmt = select(TripLeg).where(
            TripLeg.status == TripLegStatus.COMPLETED,
            TripLeg.completed_at >= window_start,
            TripLeg.completed_at < window_end,
            ~superseded,
        )
        if scope.truck_identifier:
            stmt = stmt.where(TripLeg.truck_identifier == scope.truck_identifier)
        stmt = stmt.order_by(TripLeg.completed_at, TripLeg.id)

        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def fetch_reconciliations(db: AsyncSession, leg_ids: List[int]) -> Dict[int, OdometerReconciliation]:
        if not leg_ids:
            return {}
        result = await db.execute(
            select(OdometerReconciliation).where(OdometerReconciliation.leg_id.in_(leg_ids))
        )
        return {row.leg_id: row for row in result.scalars().all()}

    @staticmethod
    async def get_report(db: AsyncSession, scope: ReportScope) -> IftaReport:
        """
        Consolidated IFTA worksheet for a scope.

        Flow:
        1. Fetch COMPLETED, non-superseded legs in scope
        2. Aggregate jurisdiction totals (route vs deadhead)
        3. Attach per-leg detail for audit drill-down
        """
        legs = await ReportBuilder.fetch_completed_legs(db, scope)
        reconciliations = await ReportBuilder.fetch_reconciliations(db, [leg.id for leg in legs])

        totals = aggregate_legs(LegMileage.from_leg(leg) for leg in legs)
        jurisdictions = [
            JurisdictionTotalResponse(
                jurisdiction_code=code,
                route_miles=total.route_miles,
                deadhead_miles=total.deadhead_miles,
                total_miles=total.total_miles,
            )
            for code, total in sorted(totals.items())
        ]

        total_route = sum((j.route_miles for j in jurisdictions), Decimal("0.0"))
        total_deadhead = sum((j.deadhead_miles for j in jurisdictions), Decimal("0.0"))

        details = []
        for leg in legs:
            reconciliation = reconciliations.get(leg.id)
            details.append(ReportLegDetail(
                leg_id=leg.id,
                truck_identifier=leg.truck_identifier,
                kind=leg.kind,
                created_at=leg.created_at,
                started_at=leg.started_at,
                completed_at=leg.completed_at,
                total_route_miles=leg.total_route_miles,
                route_miles_by_jurisdiction=[
                    JurisdictionMilesResponse(jurisdiction_code=row.jurisdiction_code, miles=row.miles)
                    for row in leg.jurisdiction_miles
                ],
                starting_odometer=leg.starting_odometer,
                ending_odometer=leg.ending_odometer,
                reconciliation_verdict=reconciliation.verdict if reconciliation else None,
                supersedes_leg_id=leg.supersedes_leg_id,
            ))

        return IftaReport(
            start_date=scope.start_date,
            end_date=scope.end_date,
            truck_identifier=scope.truck_identifier,
            jurisdictions=jurisdictions,
            total_route_miles=total_route,
            total_deadhead_miles=total_deadhead,
            total_miles=total_route + total_deadhead,
            jurisdiction_count=len(jurisdictions),
            leg_count=len(legs),
            legs=details,
        )
