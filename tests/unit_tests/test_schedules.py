"""Tests for course, schedule and block administration."""

from datetime import date, datetime, timezone

import pytest

from teesheet.errors import Conflict, InvalidRequest, NotFound
from teesheet.models import CourseCreate, DayType, Interval, ScheduleUpdate
from tests.mocks.models import (
    OTHER_TENANT,
    TENANT,
    WEEKDAY,
    make_block_create,
    make_schedule_create,
)


class TestCourses:
    @pytest.mark.asyncio
    async def test_create_course(self, schedules, tee_sheet):
        created = await schedules.create_course(TENANT, CourseCreate(name="Lakes"))
        loaded = await tee_sheet.get_course(TENANT, created.id)
        assert loaded.name == "Lakes"
        assert loaded.tee_interval == 8

    @pytest.mark.asyncio
    async def test_hours_must_be_ordered(self, schedules):
        with pytest.raises(InvalidRequest):
            await schedules.create_course(
                TENANT, CourseCreate(name="Lakes", first_tee_time="18:00", last_tee_time="06:00"),
            )


class TestSchedules:
    @pytest.mark.asyncio
    async def test_create_and_list(self, schedules, course):
        created = await schedules.create_schedule(TENANT, course.id, make_schedule_create())
        listed = await schedules.list_schedules(TENANT, course.id)
        assert [s.id for s in listed] == [created.id]

    @pytest.mark.asyncio
    async def test_intervals_round_trip(self, schedules, course):
        intervals = [
            Interval(day_type=DayType.WEEKEND, time_start="06:00", time_end="10:00",
                     interval_min=10, is_prime_time=True),
        ]
        created = await schedules.create_schedule(
            TENANT, course.id, make_schedule_create(intervals=intervals),
        )
        (listed,) = await schedules.list_schedules(TENANT, course.id)
        assert listed.intervals == created.intervals == intervals

    @pytest.mark.asyncio
    async def test_overlapping_active_schedule_rejected(self, schedules, course):
        await schedules.create_schedule(TENANT, course.id, make_schedule_create())
        with pytest.raises(Conflict, match="overlaps"):
            await schedules.create_schedule(
                TENANT, course.id,
                make_schedule_create(
                    season_name="Spring", start_date=date(2026, 3, 1), end_date=date(2026, 5, 31),
                ),
            )

    @pytest.mark.asyncio
    async def test_inactive_schedule_may_overlap(self, schedules, course):
        await schedules.create_schedule(TENANT, course.id, make_schedule_create())
        draft = await schedules.create_schedule(
            TENANT, course.id, make_schedule_create(season_name="Draft", is_active=False),
        )
        assert draft.is_active is False

    @pytest.mark.asyncio
    async def test_adjacent_schedules_allowed(self, schedules, course):
        await schedules.create_schedule(TENANT, course.id, make_schedule_create())
        await schedules.create_schedule(
            TENANT, course.id,
            make_schedule_create(
                season_name="Spring", start_date=date(2026, 4, 1), end_date=date(2026, 6, 30),
            ),
        )
        assert len(await schedules.list_schedules(TENANT, course.id)) == 2

    @pytest.mark.asyncio
    async def test_interval_window_must_be_ordered(self, schedules, course):
        bad = [Interval(day_type=DayType.WEEKDAY, time_start="10:00", time_end="09:00")]
        with pytest.raises(InvalidRequest, match="must end after it starts"):
            await schedules.create_schedule(
                TENANT, course.id, make_schedule_create(intervals=bad),
            )

    @pytest.mark.asyncio
    async def test_unknown_course(self, schedules, course):
        with pytest.raises(NotFound):
            await schedules.create_schedule(OTHER_TENANT, course.id, make_schedule_create())

    @pytest.mark.asyncio
    async def test_update_invalidates_cached_tee_sheet(self, schedules, tee_sheet, course):
        created = await schedules.create_schedule(TENANT, course.id, make_schedule_create())
        before = await tee_sheet.get_tee_sheet(TENANT, course.id, WEEKDAY)
        assert before[0].time == "07:00"

        await schedules.update_schedule(
            TENANT, created.id, ScheduleUpdate(first_tee_time="07:30"),
        )
        after = await tee_sheet.get_tee_sheet(TENANT, course.id, WEEKDAY)
        assert after[0].time == "07:30"

    @pytest.mark.asyncio
    async def test_create_invalidates_cached_miss(self, schedules, tee_sheet, course):
        before = await tee_sheet.get_tee_sheet(TENANT, course.id, WEEKDAY)
        assert before[0].time == "06:00"

        await schedules.create_schedule(TENANT, course.id, make_schedule_create())
        after = await tee_sheet.get_tee_sheet(TENANT, course.id, WEEKDAY)
        assert after[0].time == "07:00"

    @pytest.mark.asyncio
    async def test_update_cannot_create_overlap(self, schedules, course):
        await schedules.create_schedule(TENANT, course.id, make_schedule_create())
        spring = await schedules.create_schedule(
            TENANT, course.id,
            make_schedule_create(
                season_name="Spring", start_date=date(2026, 4, 1), end_date=date(2026, 6, 30),
            ),
        )
        with pytest.raises(Conflict):
            await schedules.update_schedule(
                TENANT, spring.id, ScheduleUpdate(start_date=date(2026, 3, 15)),
            )

    @pytest.mark.asyncio
    async def test_update_rejects_inverted_range(self, schedules, course):
        created = await schedules.create_schedule(TENANT, course.id, make_schedule_create())
        with pytest.raises(InvalidRequest):
            await schedules.update_schedule(
                TENANT, created.id, ScheduleUpdate(end_date=date(2025, 12, 1)),
            )

    @pytest.mark.asyncio
    async def test_delete(self, schedules, tee_sheet, course):
        created = await schedules.create_schedule(TENANT, course.id, make_schedule_create())
        await tee_sheet.get_tee_sheet(TENANT, course.id, WEEKDAY)

        await schedules.delete_schedule(TENANT, created.id)

        assert await schedules.list_schedules(TENANT, course.id) == []
        sheet = await tee_sheet.get_tee_sheet(TENANT, course.id, WEEKDAY)
        assert sheet[0].time == "06:00"

    @pytest.mark.asyncio
    async def test_delete_unknown(self, schedules, course):
        with pytest.raises(NotFound):
            await schedules.delete_schedule(TENANT, "missing")


class TestBlocks:
    @pytest.mark.asyncio
    async def test_create_list_delete(self, schedules, course):
        block = await schedules.create_block(TENANT, course.id, make_block_create())
        assert [b.id for b in await schedules.list_blocks(TENANT, course.id)] == [block.id]

        await schedules.delete_block(TENANT, block.id)
        assert await schedules.list_blocks(TENANT, course.id) == []

    @pytest.mark.asyncio
    async def test_invalid_recurring_pattern(self, schedules, course):
        body = make_block_create(is_recurring=True, recurring_pattern="WEEKLY:FUNDAY")
        with pytest.raises(InvalidRequest, match="weekday codes"):
            await schedules.create_block(TENANT, course.id, body)

    @pytest.mark.asyncio
    async def test_pattern_on_one_off_block(self, schedules, course):
        body = make_block_create(recurring_pattern="DAILY")
        with pytest.raises(InvalidRequest, match="Only recurring blocks"):
            await schedules.create_block(TENANT, course.id, body)

    def test_window_must_be_ordered(self):
        with pytest.raises(ValueError):
            make_block_create(
                start_time=datetime(2026, 1, 27, 10, 0, tzinfo=timezone.utc),
                end_time=datetime(2026, 1, 27, 8, 0, tzinfo=timezone.utc),
            )

    @pytest.mark.asyncio
    async def test_other_tenant_cannot_delete(self, schedules, course):
        block = await schedules.create_block(TENANT, course.id, make_block_create())
        with pytest.raises(NotFound):
            await schedules.delete_block(OTHER_TENANT, block.id)
