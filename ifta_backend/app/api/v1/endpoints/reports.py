"""
IFTA Report API Endpoints.

Read-only worksheet data for a date range or filing quarter.
"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from ifta_backend.app.db.session import get_db
from ifta_backend.app.schemas.report import IftaReport
from ifta_backend.app.services.report_builder import ReportBuilder, ReportScope

router = APIRouter(prefix="/reports", tags=["IFTA Reports"])


def build_scope(
    start_date: Optional[date],
    end_date: Optional[date],
    quarter: Optional[str],
    truck_identifier: Optional[str]
) -> ReportScope:
    if quarter:
        if start_date or end_date:
            raise ValueError("Use either quarter or start_date/end_date, not both")
        return ReportScope.for_quarter(quarter, truck_identifier=truck_identifier)
    if not start_date or not end_date:
        raise ValueError("start_date and end_date are required when quarter is not given")
    return ReportScope(start_date=start_date, end_date=end_date, truck_identifier=truck_identifier)


@router.get("/ifta", response_model=IftaReport)
async def get_ifta_report(
    start_date: Optional[date] = Query(None, description="First completion date (inclusive)"),
    end_date: Optional[date] = Query(None, description="Last completion date (inclusive)"),
    quarter: Optional[str] = Query(None, description="IFTA quarter, e.g. 2026-Q3"),
    truck_identifier: Optional[str] = Query(None, max_length=50),
    db: AsyncSession = Depends(get_db)
):
    """
    State-by-state IFTA worksheet.
    
    Totals cover COMPLETED legs only, split into route (loaded) and
    deadhead miles, with per-leg detail for audit.
    """
    try:
        scope = build_scope(start_date, end_date, quarter, truck_identifier)
    except (ValueError, ValidationError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    return await ReportBuilder.get_report(db, scope)
