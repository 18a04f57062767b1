"""
Trip Leg Tracker.

Drives a trip leg through PENDING -> ROUTE_CALCULATED -> IN_PROGRESS ->
COMPLETED (or FAILED). Every transition is a compare-and-swap on the
persisted status: the write only lands if the row is still in the expected
pre-state, otherwise the caller gets STALE_STATE and must re-read.

The apportionment written at ROUTE_CALCULATED is frozen; later transitions
never touch route fields.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy import select, update, or_
from sqlalchemy.ext.asyncio import AsyncSession

from ifta_backend.app.core.config import settings
from ifta_backend.app.core.exceptions import ErrorCode, RoutingConfigurationError, RoutingProviderUnavailableError
from ifta_backend.app.domain.mileage.odometer import reconcile_odometer
from ifta_backend.app.domain.mileage.span_parser import SpanParseError, apportionment_gap, parse_route_response
from ifta_backend.app.domain.results import OperationResult
from ifta_backend.app.models.odometer_reconciliation import OdometerReconciliation
from ifta_backend.app.models.trip_leg import TripLeg, TripLegJurisdictionMiles
from ifta_backend.app.models.trip_leg_enums import (
    TripLegKind, TripLegStatus, ReconciliationVerdict, ReviewStatus
)
from ifta_backend.app.services.audit import log_event, AuditAction
from ifta_backend.app.services.location_source import LiveLocationSource
from ifta_backend.app.services.routing_provider import ProviderTimeoutError, ProviderResponseError

logger = logging.getLogger("ifta.tracker")

Coordinate = Tuple[float, float]


class TripLegTracker:
    """
    Exclusive writer of trip leg status and route fields.

    Holds configuration only; all state lives in the database.
    """

    def __init__(
        self,
        terminal: Optional[Coordinate] = None,
        coverage_tolerance: Optional[Decimal] = None,
        variance_tolerance: Optional[Decimal] = None,
        route_claim_ttl_seconds: Optional[int] = None,
    ):
        self.terminal = terminal or (settings.terminal_latitude, settings.terminal_longitude)
        self.coverage_tolerance = coverage_tolerance if coverage_tolerance is not None else Decimal(str(settings.coverage_gap_tolerance))
        self.variance_tolerance = variance_tolerance if variance_tolerance is not None else Decimal(str(settings.odometer_variance_tolerance))
        self.route_claim_ttl = timedelta(
            seconds=route_claim_ttl_seconds if route_claim_ttl_seconds is not None else settings.route_claim_ttl_seconds
        )

    # --- Reads ---

    async def get_leg(self, db: AsyncSession, leg_id: int) -> Optional[TripLeg]:
        """Load a leg with its apportionment, bypassing stale identity-map state."""
        result = await db.execute(
            select(TripLeg)
            .where(TripLeg.id == leg_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_reconciliation(self, db: AsyncSession, leg_id: int) -> Optional[OdometerReconciliation]:
        result = await db.execute(
            select(OdometerReconciliation).where(OdometerReconciliation.leg_id == leg_id)
        )
        return result.scalar_one_or_none()

    # --- Creation ---

    async def create_leg(
        self,
        db: AsyncSession,
        truck_identifier: str,
        origin: Coordinate,
        destination: Coordinate,
        starting_odometer: Optional[Decimal] = None,
        supersedes_leg_id: Optional[int] = None,
        actor: Optional[str] = None
    ) -> OperationResult:
        """
        Create a PENDING loaded leg between shipper and receiver.

        When `supersedes_leg_id` is set the new leg is a compensating
        correction of that COMPLETED leg.
        """
        if supersedes_leg_id is not None:
            rejection = await self._check_correction_target(db, supersedes_leg_id)
            if rejection is not None:
                return rejection

        return await self._create(
            db,
            kind=TripLegKind.LOADED,
            truck_identifier=truck_identifier,
            origin=origin,
            destination=destination,
            starting_odometer=starting_odometer,
            supersedes_leg_id=supersedes_leg_id,
            actor=actor,
        )

    async def create_return_to_terminal_leg(
        self,
        db: AsyncSession,
        truck_identifier: str,
        current_position: Optional[Coordinate] = None,
        starting_odometer: Optional[Decimal] = None,
        actor: Optional[str] = None
    ) -> OperationResult:
        """
        Create a PENDING deadhead leg back to the terminal.

        The origin is the driver's current position: taken from the request
        when given, otherwise from the latest recorded GPS ping.
        """
        origin = current_position
        if origin is None:
            origin = await LiveLocationSource.current_position(db, truck_identifier)
        if origin is None:
            return OperationResult.failure(
                ErrorCode.NO_LIVE_LOCATION,
                f"No live location available for truck {truck_identifier}"
            )

        return await self._create(
            db,
            kind=TripLegKind.DEADHEAD_RETURN,
            truck_identifier=truck_identifier,
            origin=origin,
            destination=self.terminal,
            starting_odometer=starting_odometer,
            supersedes_leg_id=None,
            actor=actor,
        )

    async def _create(
        self,
        db: AsyncSession,
        kind: TripLegKind,
        truck_identifier: str,
        origin: Coordinate,
        destination: Coordinate,
        starting_odometer: Optional[Decimal],
        supersedes_leg_id: Optional[int],
        actor: Optional[str]
    ) -> OperationResult:
        leg = TripLeg(
            truck_identifier=truck_identifier,
            kind=kind,
            origin_latitude=origin[0],
            origin_longitude=origin[1],
            destination_latitude=destination[0],
            destination_longitude=destination[1],
            starting_odometer=starting_odometer,
            supersedes_leg_id=supersedes_leg_id,
            status=TripLegStatus.PENDING,
        )
        db.add(leg)
        await db.flush()

        await log_event(
            db=db,
            action=AuditAction.LEG_CREATED,
            leg_id=leg.id,
            truck_identifier=truck_identifier,
            actor=actor,
            metadata={
                "kind": kind.value,
                "origin": list(origin),
                "destination": list(destination),
                "supersedes_leg_id": supersedes_leg_id,
            }
        )
        await db.commit()

        logger.info("Created %s leg %s for truck %s", kind.value, leg.id, truck_identifier)
        return OperationResult.success(leg=await self.get_leg(db, leg.id))

    async def _check_correction_target(self, db: AsyncSession, target_id: int) -> Optional[OperationResult]:
        target = await self.get_leg(db, target_id)
        if target is None or target.status != TripLegStatus.COMPLETED:
            return OperationResult.failure(
                ErrorCode.INVALID_CORRECTION,
                f"Only a COMPLETED leg can be corrected; leg {target_id} is "
                f"{target.status.value if target else 'missing'}"
            )

        existing = await db.execute(
            select(TripLeg.id).where(
                TripLeg.supersedes_leg_id == target_id,
                TripLeg.status != TripLegStatus.FAILED
            )
        )
        existing_id = existing.scalars().first()
        if existing_id is not None:
            return OperationResult.failure(
                ErrorCode.INVALID_CORRECTION,
                f"Leg {target_id} already has correction {existing_id}"
            )
        return None

    # --- PENDING -> ROUTE_CALCULATED / FAILED ---

    async def calculate_route(
        self,
        db: AsyncSession,
        leg_id: int,
        provider,
        actor: Optional[str] = None
    ) -> OperationResult:
        """
        Request the route for a PENDING leg and commit its apportionment.

        Flow:
        1. Claim the leg (one outstanding provider request per leg)
        2. Call the routing provider (bounded timeout, no retry)
        3. Parse spans into a jurisdiction split
        4. CAS PENDING -> ROUTE_CALCULATED, or PENDING -> FAILED

        Network unavailability and unexpected errors release the claim and
        propagate; the leg stays PENDING so the caller can issue a new request.
        """
        if provider is None:
            raise RoutingConfigurationError()

        leg = await self.get_leg(db, leg_id)
        if leg is None:
            return self._not_found(leg_id)
        if leg.status != TripLegStatus.PENDING:
            return self._stale(leg, TripLegStatus.PENDING)

        claim_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        claimed = await self._compare_and_set(
            db, leg_id, TripLegStatus.PENDING,
            {"route_request_id": claim_id, "route_requested_at": now},
            or_(
                TripLeg.route_request_id.is_(None),
                TripLeg.route_requested_at < now - self.route_claim_ttl,
            ),
        )
        if not claimed:
            await db.rollback()
            return await self._rejected(db, leg_id, TripLegStatus.PENDING, "A route request is already in flight")
        await db.commit()

        try:
            raw = await provider.route(
                leg.origin_latitude, leg.origin_longitude,
                leg.destination_latitude, leg.destination_longitude,
            )
            parsed = parse_route_response(raw, coverage_tolerance=self.coverage_tolerance)
        except ProviderTimeoutError as exc:
            return await self._fail_route(db, leg_id, claim_id, ErrorCode.PROVIDER_TIMEOUT, str(exc), actor)
        except ProviderResponseError as exc:
            return await self._fail_route(db, leg_id, claim_id, ErrorCode.PROVIDER_ERROR, str(exc), actor)
        except SpanParseError as exc:
            return await self._fail_route(db, leg_id, claim_id, exc.error_code, exc.message, actor)
        except RoutingProviderUnavailableError:
            await self._release_claim(db, leg_id, claim_id)
            raise
        except Exception:
            logger.exception("Leg %s route request failed unexpectedly", leg_id)
            await self._release_claim(db, leg_id, claim_id)
            raise

        committed = await self._compare_and_set(
            db, leg_id, TripLegStatus.PENDING,
            {
                "status": TripLegStatus.ROUTE_CALCULATED,
                "total_route_miles": parsed.total_miles,
                "total_duration_seconds": parsed.total_duration_seconds,
                "route_calculated_at": datetime.now(timezone.utc),
                "route_request_id": None,
                "route_requested_at": None,
            },
            TripLeg.route_request_id == claim_id,
        )
        if not committed:
            await db.rollback()
            return await self._rejected(db, leg_id, TripLegStatus.PENDING, "Route request claim was lost")

        db.add_all([
            TripLegJurisdictionMiles(
                leg_id=leg_id,
                sequence=sequence,
                jurisdiction_code=span.jurisdiction_code,
                miles=span.miles,
            )
            for sequence, span in enumerate(parsed.spans, start=1)
        ])
        await log_event(
            db=db,
            action=AuditAction.ROUTE_CALCULATED,
            leg_id=leg_id,
            truck_identifier=leg.truck_identifier,
            actor=actor,
            metadata={
                "total_route_miles": str(parsed.total_miles),
                "total_duration_seconds": parsed.total_duration_seconds,
                "miles_by_jurisdiction": [[s.jurisdiction_code, str(s.miles)] for s in parsed.spans],
            }
        )
        await db.commit()

        logger.info(
            "Leg %s route calculated: %s miles across %d jurisdictions",
            leg_id, parsed.total_miles, len(parsed.spans)
        )
        return OperationResult.success(leg=await self.get_leg(db, leg_id))

    async def _fail_route(
        self,
        db: AsyncSession,
        leg_id: int,
        claim_id: str,
        error_code: ErrorCode,
        message: str,
        actor: Optional[str]
    ) -> OperationResult:
        failed = await self._compare_and_set(
            db, leg_id, TripLegStatus.PENDING,
            {
                "status": TripLegStatus.FAILED,
                "error_code": error_code.value,
                "error_message": message,
                "route_request_id": None,
                "route_requested_at": None,
            },
            TripLeg.route_request_id == claim_id,
        )
        if not failed:
            await db.rollback()
            return await self._rejected(db, leg_id, TripLegStatus.PENDING, "Route request claim was lost")

        leg = await self.get_leg(db, leg_id)
        await log_event(
            db=db,
            action=AuditAction.ROUTE_FAILED,
            leg_id=leg_id,
            truck_identifier=leg.truck_identifier,
            actor=actor,
            metadata={"error_code": error_code.value, "message": message}
        )
        await db.commit()

        logger.warning("Leg %s failed route calculation: %s %s", leg_id, error_code.value, message)
        return OperationResult.failure(error_code, message, leg=leg)

    async def _release_claim(self, db: AsyncSession, leg_id: int, claim_id: str) -> None:
        await db.rollback()
        await db.execute(
            update(TripLeg)
            .where(TripLeg.id == leg_id, TripLeg.route_request_id == claim_id)
            .values(route_request_id=None, route_requested_at=None)
            .execution_options(synchronize_session=False)
        )
        await db.commit()

    # --- ROUTE_CALCULATED -> IN_PROGRESS ---

    async def start_leg(
        self,
        db: AsyncSession,
        leg_id: int,
        starting_odometer: Optional[Decimal] = None,
        actor: Optional[str] = None
    ) -> OperationResult:
        """
        Driver confirms departure. No route recomputation happens here; the
        committed apportionment stays as calculated.

        A stored apportionment whose jurisdiction miles no longer sum to the
        route total moves the leg ROUTE_CALCULATED -> FAILED instead.
        """
        leg = await self.get_leg(db, leg_id)
        if leg is not None and leg.status == TripLegStatus.ROUTE_CALCULATED:
            gap = apportionment_gap(leg.total_route_miles, [row.miles for row in leg.jurisdiction_miles])
            if gap > self.coverage_tolerance:
                return await self._fail_apportionment(db, leg, gap, actor)

        values = {"status": TripLegStatus.IN_PROGRESS, "started_at": datetime.now(timezone.utc)}
        if starting_odometer is not None:
            values["starting_odometer"] = starting_odometer

        if not await self._compare_and_set(db, leg_id, TripLegStatus.ROUTE_CALCULATED, values):
            await db.rollback()
            return await self._rejected(db, leg_id, TripLegStatus.ROUTE_CALCULATED)

        leg = await self.get_leg(db, leg_id)
        await log_event(
            db=db,
            action=AuditAction.LEG_STARTED,
            leg_id=leg_id,
            truck_identifier=leg.truck_identifier,
            actor=actor,
            metadata={"starting_odometer": _str_or_none(leg.starting_odometer)}
        )
        await db.commit()

        logger.info("Leg %s started", leg_id)
        return OperationResult.success(leg=leg)

    async def _fail_apportionment(
        self,
        db: AsyncSession,
        leg: TripLeg,
        gap: Decimal,
        actor: Optional[str]
    ) -> OperationResult:
        leg_id = leg.id
        truck_identifier = leg.truck_identifier
        message = (
            f"Jurisdiction miles disagree with the {leg.total_route_miles} mile route total "
            f"by {gap.quantize(Decimal('0.0001'))}"
        )
        failed = await self._compare_and_set(
            db, leg_id, TripLegStatus.ROUTE_CALCULATED,
            {
                "status": TripLegStatus.FAILED,
                "error_code": ErrorCode.PROVIDER_COVERAGE_GAP.value,
                "error_message": message,
            },
        )
        if not failed:
            await db.rollback()
            return await self._rejected(db, leg_id, TripLegStatus.ROUTE_CALCULATED)

        await log_event(
            db=db,
            action=AuditAction.ROUTE_FAILED,
            leg_id=leg_id,
            truck_identifier=truck_identifier,
            actor=actor,
            metadata={"error_code": ErrorCode.PROVIDER_COVERAGE_GAP.value, "message": message}
        )
        await db.commit()

        logger.warning("Leg %s apportionment rejected before start: %s", leg_id, message)
        return OperationResult.failure(
            ErrorCode.PROVIDER_COVERAGE_GAP, message, leg=await self.get_leg(db, leg_id)
        )

    # --- IN_PROGRESS -> COMPLETED ---

    async def complete_leg(
        self,
        db: AsyncSession,
        leg_id: int,
        ending_odometer: Optional[Decimal] = None,
        actor: Optional[str] = None
    ) -> OperationResult:
        """
        Driver acknowledges the trip is finished.

        When both odometer readings are present the reconciler runs and its
        verdict is attached. Discrepancies and invalid readings are returned
        as advisories; they never block completion or change mileage.
        """
        values = {"status": TripLegStatus.COMPLETED, "completed_at": datetime.now(timezone.utc)}
        if ending_odometer is not None:
            values["ending_odometer"] = ending_odometer

        if not await self._compare_and_set(db, leg_id, TripLegStatus.IN_PROGRESS, values):
            await db.rollback()
            return await self._rejected(db, leg_id, TripLegStatus.IN_PROGRESS)

        leg = await self.get_leg(db, leg_id)
        advisories = []
        reconciliation = None

        check = reconcile_odometer(
            leg.starting_odometer,
            leg.ending_odometer,
            leg.total_route_miles,
            tolerance=self.variance_tolerance,
        )
        if check is not None:
            reconciliation = OdometerReconciliation(
                leg_id=leg_id,
                verdict=check.verdict,
                odometer_delta=check.odometer_delta,
                route_miles=check.route_miles,
                variance=check.variance,
                tolerance=check.tolerance,
                review_status=ReviewStatus.PENDING_REVIEW if check.needs_review else ReviewStatus.NOT_REQUIRED,
            )
            db.add(reconciliation)
            await db.flush()

            if check.verdict == ReconciliationVerdict.DISCREPANCY:
                advisories.append(ErrorCode.RECONCILIATION_DISCREPANCY)
            elif check.verdict == ReconciliationVerdict.INVALID_ODOMETER:
                advisories.append(ErrorCode.INVALID_ODOMETER)

            await log_event(
                db=db,
                action=AuditAction.ODOMETER_RECONCILED,
                leg_id=leg_id,
                truck_identifier=leg.truck_identifier,
                actor=actor,
                metadata={
                    "verdict": check.verdict.value,
                    "odometer_delta": str(check.odometer_delta),
                    "variance": _str_or_none(check.variance),
                }
            )
            if check.needs_review:
                logger.warning(
                    "Leg %s odometer %s (delta %s vs routed %s)",
                    leg_id, check.verdict.value, check.odometer_delta, check.route_miles
                )

        await log_event(
            db=db,
            action=AuditAction.LEG_COMPLETED,
            leg_id=leg_id,
            truck_identifier=leg.truck_identifier,
            actor=actor,
            metadata={
                "total_route_miles": _str_or_none(leg.total_route_miles),
                "ending_odometer": _str_or_none(leg.ending_odometer),
            }
        )
        await db.commit()

        logger.info("Leg %s completed", leg_id)
        return OperationResult.success(leg=leg, reconciliation=reconciliation, advisories=advisories)

    # --- Helpers ---

    async def _compare_and_set(
        self,
        db: AsyncSession,
        leg_id: int,
        expected: TripLegStatus,
        values: dict,
        *conditions
    ) -> bool:
        """Apply `values` only if the leg is still in `expected` status."""
        result = await db.execute(
            update(TripLeg)
            .where(TripLeg.id == leg_id, TripLeg.status == expected, *conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _rejected(
        self,
        db: AsyncSession,
        leg_id: int,
        expected: TripLegStatus,
        reason: Optional[str] = None
    ) -> OperationResult:
        leg = await self.get_leg(db, leg_id)
        if leg is None:
            return self._not_found(leg_id)
        return self._stale(leg, expected, reason)

    @staticmethod
    def _not_found(leg_id: int) -> OperationResult:
        return OperationResult.failure(ErrorCode.LEG_NOT_FOUND, f"Trip leg {leg_id} not found")

    @staticmethod
    def _stale(leg: TripLeg, expected: TripLegStatus, reason: Optional[str] = None) -> OperationResult:
        message = reason or f"Expected leg {leg.id} to be {expected.value}, found {leg.status.value}"
        return OperationResult.failure(ErrorCode.STALE_STATE, message, leg=leg)


def _str_or_none(value) -> Optional[str]:
    return None if value is None else str(value)
