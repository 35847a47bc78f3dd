"""
Tee-sheet endpoints – the day grid and the multi-day occupancy view.
"""

from datetime import date

from fastapi import APIRouter, Query, Request

from teesheet.dependencies import CurrentActor, TeeSheet
from teesheet.models import TeeSheetSlot, WeekViewOccupancySlot
from teesheet.rate_limit import DEFAULT, limiter

router = APIRouter(prefix="/api/courses/{course_id}", tags=["tee-sheet"])

_TIME_PATTERN = r"^([01][0-9]|2[0-3]):[0-5][0-9]$"


@router.get(
    "/tee-sheet",
    response_model=list[TeeSheetSlot],
    operation_id="getTeeSheet",
    summary="Every tee time of a day with bookings, availability and blocks",
)
@limiter.limit(DEFAULT)
async def get_tee_sheet(
    request: Request,
    course_id: str,
    actor: CurrentActor,
    tee_sheet: TeeSheet,
    day: date = Query(..., alias="date", description="Day to project (YYYY-MM-DD)"),
) -> list[TeeSheetSlot]:
    return await tee_sheet.get_tee_sheet(actor.tenant_id, course_id, day)


@router.get(
    "/week-view",
    response_model=list[WeekViewOccupancySlot],
    operation_id="getWeekViewOccupancy",
    summary="Per-position occupancy for every slot and nine over a date range",
)
@limiter.limit(DEFAULT)
async def get_week_view(
    request: Request,
    course_id: str,
    actor: CurrentActor,
    tee_sheet: TeeSheet,
    start_date: date = Query(..., description="First day (inclusive)"),
    end_date: date = Query(..., description="Last day (inclusive)"),
    start_time: str | None = Query(None, pattern=_TIME_PATTERN, description="Earliest slot (HH:MM)"),
    end_time: str | None = Query(None, pattern=_TIME_PATTERN, description="Slots before this (HH:MM)"),
) -> list[WeekViewOccupancySlot]:
    return await tee_sheet.get_week_view_occupancy(
        actor.tenant_id, course_id, start_date, end_date, start_time, end_time,
    )
