"""
Odometer review queue.

Legs whose odometer verdict is not MATCH wait here for a human decision.
Resolving a review records who looked at it; mileage is never touched.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ifta_backend.app.core.exceptions import ErrorCode
from ifta_backend.app.domain.results import OperationResult
from ifta_backend.app.models.odometer_reconciliation import OdometerReconciliation
from ifta_backend.app.models.trip_leg import TripLeg
from ifta_backend.app.models.trip_leg_enums import ReviewStatus
from ifta_backend.app.services.audit import log_event, AuditAction


class ReviewQueue:

    @staticmethod
    async def get(db: AsyncSession, reconciliation_id: int) -> Optional[OdometerReconciliation]:
        result = await db.execute(
            select(OdometerReconciliation)
            .where(OdometerReconciliation.id == reconciliation_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_pending(
        db: AsyncSession,
        truck_identifier: Optional[str] = None,
        limit: int = 100
    ) -> List[OdometerReconciliation]:
        """Pending reviews, oldest first."""
        stmt = (
            select(OdometerReconciliation)
            .join(TripLeg, TripLeg.id == OdometerReconciliation.leg_id)
            .where(OdometerReconciliation.review_status == ReviewStatus.PENDING_REVIEW)
        )
        if truck_identifier:
            stmt = stmt.where(TripLeg.truck_identifier == truck_identifier)
        stmt = stmt.order_by(OdometerReconciliation.created_at, OdometerReconciliation.id).limit(limit)

        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def resolve(
        db: AsyncSession,
        reconciliation_id: int,
        reviewed_by: str,
        note: Optional[str] = None
    ) -> OperationResult:
        """
        Mark a pending review as RESOLVED.

        Only a PENDING_REVIEW record can be resolved; anything else is
        STALE_STATE.
        """
        result = await db.execute(
            update(OdometerReconciliation)
            .where(
                OdometerReconciliation.id == reconciliation_id,
                OdometerReconciliation.review_status == ReviewStatus.PENDING_REVIEW,
            )
            .values(
                review_status=ReviewStatus.RESOLVED,
                reviewed_by=reviewed_by,
                review_note=note,
                reviewed_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        updated = result.rowcount == 1
        if not updated:
            await db.rollback()

        reconciliation = await ReviewQueue.get(db, reconciliation_id)

        if reconciliation is None:
            return OperationResult.failure(
                ErrorCode.RECONCILIATION_NOT_FOUND,
                f"Reconciliation {reconciliation_id} not found"
            )
        if not updated:
            return OperationResult.failure(
                ErrorCode.STALE_STATE,
                f"Reconciliation {reconciliation_id} is {reconciliation.review_status.value}, not PENDING_REVIEW",
                reconciliation=reconciliation
            )

        await log_event(
            db=db,
            action=AuditAction.REVIEW_RESOLVED,
            leg_id=reconciliation.leg_id,
            actor=reviewed_by,
            metadata={"reconciliation_id": reconciliation_id, "note": note}
        )
        await db.commit()

        return OperationResult.success(reconciliation=reconciliation)
