"""
Course configuration administration: courses, seasonal schedules, blocks.

Keeps the invariant the tee sheet relies on – at most one active schedule
covers any date of a course – and invalidates cached lookups whenever a
schedule changes.
"""

from __future__ import annotations

import logging
from datetime import date

from teesheet.db import TeeSheetStore
from teesheet.errors import Conflict, InvalidRequest, NotFound, store_errors
from teesheet.models import (
    Block,
    BlockCreate,
    Course,
    CourseCreate,
    ScheduleCreate,
    ScheduleUpdate,
    SeasonalSchedule,
)
from teesheet.services.cache import TeeSheetCache
from teesheet.services.recurrence import validate_pattern
from teesheet.services.slot_generator import to_minutes

logger = logging.getLogger(__name__)


def _check_hours(first_tee_time: str, last_tee_time: str) -> None:
    if to_minutes(first_tee_time) > to_minutes(last_tee_time):
        raise InvalidRequest("first_tee_time must not be after last_tee_time")


def _check_intervals(schedule: SeasonalSchedule | ScheduleCreate) -> None:
    for interval in schedule.intervals:
        if to_minutes(interval.time_start) >= to_minutes(interval.time_end):
            raise InvalidRequest(
                f"Interval {interval.time_start}-{interval.time_end} must end after it starts"
            )


class ScheduleService:
    def __init__(self, store: TeeSheetStore, cache: TeeSheetCache) -> None:
        self._store = store
        self._cache = cache

    # ── Courses ────────────────────────────────────────────────────────

    async def create_course(self, tenant_id: str, body: CourseCreate) -> Course:
        _check_hours(body.first_tee_time, body.last_tee_time)
        with store_errors():
            course = await self._store.create_course(tenant_id, body)
        self._cache.invalidate_course(course.id)
        logger.info("Created course %s for tenant %s", course.id, tenant_id)
        return course

    async def _course(self, tenant_id: str, course_id: str) -> Course:
        with store_errors():
            course = await self._store.get_course(tenant_id, course_id)
        if course is None:
            raise NotFound("Course not found")
        return course

    # ── Schedules ──────────────────────────────────────────────────────

    async def _ensure_no_overlap(
        self,
        tenant_id: str,
        course_id: str,
        start_date: date,
        end_date: date,
        *,
        exclude_id: str | None = None,
    ) -> None:
        with store_errors():
            others = await self._store.list_schedules(
                tenant_id, course_id, active_only=True, date_from=start_date, date_to=end_date,
            )
        clashes = [s for s in others if s.id != exclude_id]
        if clashes:
            raise Conflict(
                f"Schedule overlaps active season {clashes[0].season_name!r} "
                f"({clashes[0].start_date} to {clashes[0].end_date})"
            )

    async def list_schedules(self, tenant_id: str, course_id: str) -> list[SeasonalSchedule]:
        await self._course(tenant_id, course_id)
        with store_errors():
            return await self._store.list_schedules(tenant_id, course_id)

    async def create_schedule(
        self, tenant_id: str, course_id: str, body: ScheduleCreate,
    ) -> SeasonalSchedule:
        await self._course(tenant_id, course_id)
        _check_hours(body.first_tee_time, body.last_tee_time)
        _check_intervals(body)
        if body.is_active:
            await self._ensure_no_overlap(tenant_id, course_id, body.start_date, body.end_date)

        with store_errors():
            schedule = await self._store.create_schedule(course_id, body)
        self._cache.invalidate_schedules(course_id)
        logger.info(
            "Created schedule %r for course %s (%s to %s)",
            schedule.season_name, course_id, schedule.start_date, schedule.end_date,
        )
        return schedule

    async def update_schedule(
        self, tenant_id: str, schedule_id: str, body: ScheduleUpdate,
    ) -> SeasonalSchedule:
        with store_errors():
            existing = await self._store.get_schedule(tenant_id, schedule_id)
        if existing is None:
            raise NotFound("Schedule not found")

        changes = body.model_dump(exclude_unset=True, exclude_none=True)
        updated = SeasonalSchedule.model_validate({**existing.model_dump(), **changes})
        if updated.end_date < updated.start_date:
            raise InvalidRequest("end_date must not be before start_date")
        _check_hours(updated.first_tee_time, updated.last_tee_time)
        _check_intervals(updated)
        if updated.is_active:
            await self._ensure_no_overlap(
                tenant_id, updated.course_id, updated.start_date, updated.end_date,
                exclude_id=schedule_id,
            )

        with store_errors():
            await self._store.save_schedule(updated)
        self._cache.invalidate_schedules(updated.course_id)
        return updated

    async def delete_schedule(self, tenant_id: str, schedule_id: str) -> None:
        with store_errors():
            existing = await self._store.get_schedule(tenant_id, schedule_id)
            if existing is None:
                raise NotFound("Schedule not found")
            await self._store.delete_schedule(schedule_id)
        self._cache.invalidate_schedules(existing.course_id)
        logger.info("Deleted schedule %s", schedule_id)

    # ── Blocks ─────────────────────────────────────────────────────────

    async def list_blocks(self, tenant_id: str, course_id: str) -> list[Block]:
        await self._course(tenant_id, course_id)
        with store_errors():
            return await self._store.list_blocks(tenant_id, course_id)

    async def create_block(self, tenant_id: str, course_id: str, body: BlockCreate) -> Block:
        await self._course(tenant_id, course_id)
        if body.is_recurring:
            try:
                validate_pattern(body.recurring_pattern or "")
            except ValueError as exc:
                raise InvalidRequest(str(exc)) from exc
        elif body.recurring_pattern:
            raise InvalidRequest("Only recurring blocks take a recurring_pattern")

        with store_errors():
            block = await self._store.create_block(course_id, body)
        logger.info("Created %s block %s on course %s", block.block_type.value, block.id, course_id)
        return block

    async def delete_block(self, tenant_id: str, block_id: str) -> None:
        with store_errors():
            deleted = await self._store.delete_block(tenant_id, block_id)
        if not deleted:
            raise NotFound("Block not found")
