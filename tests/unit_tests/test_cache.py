"""Tests for the caching layer."""

from datetime import date

import pytest

from teesheet.models import Course, SeasonalSchedule
from teesheet.services.cache import (
    MISSING,
    InMemoryCacheService,
    TeeSheetCache,
    course_key,
    schedule_key,
)
from tests.mocks.models import OTHER_TENANT, TENANT, WEEKDAY

COURSE = Course(id="course-1", tenant_id=TENANT, name="Championship Course")


class _CountingLoader:
    def __init__(self, value):
        self.value = value
        self.calls = 0

    async def __call__(self, *args):
        self.calls += 1
        return self.value


# ── InMemoryCacheService ───────────────────────────────────────────────────


class TestInMemoryCacheService:
    def test_get_missing(self):
        assert InMemoryCacheService().get("nope") is MISSING

    def test_set_get_delete(self):
        backend = InMemoryCacheService()
        backend.set("k", None)
        assert backend.get("k") is None
        backend.delete("k")
        assert backend.get("k") is MISSING
        backend.delete("k")  # deleting twice is fine

    def test_delete_prefix(self):
        backend = InMemoryCacheService()
        backend.set("schedule:c1:2026-01-01", 1)
        backend.set("schedule:c1:2026-01-02", 2)
        backend.set("schedule:c2:2026-01-01", 3)
        assert backend.delete_prefix("schedule:c1:") == 2
        assert len(backend) == 1


# ── TeeSheetCache ──────────────────────────────────────────────────────────


class TestTeeSheetCache:
    def test_keys(self):
        assert course_key("c1") == "course:c1"
        assert schedule_key("c1", date(2026, 1, 27)) == "schedule:c1:2026-01-27"

    @pytest.mark.asyncio
    async def test_course_read_through(self):
        cache = TeeSheetCache(InMemoryCacheService())
        loader = _CountingLoader(COURSE)

        assert await cache.course(TENANT, "course-1", loader) == COURSE
        assert await cache.course(TENANT, "course-1", loader) == COURSE
        assert loader.calls == 1
        assert (cache.hits, cache.misses) == (1, 1)

    @pytest.mark.asyncio
    async def test_not_found_is_cached(self):
        cache = TeeSheetCache(InMemoryCacheService())
        loader = _CountingLoader(None)

        assert await cache.active_schedule(TENANT, "course-1", WEEKDAY, loader) is None
        assert await cache.active_schedule(TENANT, "course-1", WEEKDAY, loader) is None
        assert loader.calls == 1

    @pytest.mark.asyncio
    async def test_other_tenant_is_a_miss(self):
        cache = TeeSheetCache(InMemoryCacheService())
        await cache.course(TENANT, "course-1", _CountingLoader(COURSE))

        other = _CountingLoader(None)
        assert await cache.course(OTHER_TENANT, "course-1", other) is None
        assert other.calls == 1

    @pytest.mark.asyncio
    async def test_invalidate_schedules_only_touches_course(self):
        backend = InMemoryCacheService()
        cache = TeeSheetCache(backend)
        schedule = SeasonalSchedule(
            id="s1", course_id="course-1", season_name="Summer",
            start_date=date(2026, 1, 1), end_date=date(2026, 3, 31),
            first_tee_time="07:00", last_tee_time="08:00",
        )
        loader = _CountingLoader(schedule)
        await cache.active_schedule(TENANT, "course-1", WEEKDAY, loader)
        await cache.active_schedule(TENANT, "course-2", WEEKDAY, _CountingLoader(None))

        cache.invalidate_schedules("course-1")

        assert backend.get(schedule_key("course-1", WEEKDAY)) is MISSING
        assert backend.get(schedule_key("course-2", WEEKDAY)) is not MISSING
        await cache.active_schedule(TENANT, "course-1", WEEKDAY, loader)
        assert loader.calls == 2

    @pytest.mark.asyncio
    async def test_invalidate_course(self):
        cache = TeeSheetCache(InMemoryCacheService())
        loader = _CountingLoader(COURSE)
        await cache.course(TENANT, "course-1", loader)
        cache.invalidate_course("course-1")
        await cache.course(TENANT, "course-1", loader)
        assert loader.calls == 2
