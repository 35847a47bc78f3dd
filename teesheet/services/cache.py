"""
Caching layer for course and schedule lookups.

Keeps the hot tee-sheet read path off the database.  Entries never
expire on a timer: they live until the process exits or until an admin
change invalidates them explicitly.  "Not found" results are cached too,
so a date with no seasonal schedule costs one query, not one per request.

Every entry remembers the tenant it was loaded for.  A hit for a
different tenant is treated as a miss, so a shared cache cannot leak one
club's course to another.

Usage::

    cache = TeeSheetCache(InMemoryCacheService())
    course = await cache.course(tenant_id, course_id, loader=store.get_course)
    ...
    cache.invalidate_schedules(course_id)   # after a schedule change
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import date
from typing import Any, Protocol, TypeVar

from teesheet.models import Course, SeasonalSchedule

logger = logging.getLogger(__name__)

T = TypeVar("T")

MISSING: Any = object()


class CacheService(Protocol):
    """Key/value store used by :class:`TeeSheetCache`."""

    def get(self, key: str) -> Any:
        """Return the cached value or :data:`MISSING`."""
        ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...

    def delete_prefix(self, prefix: str) -> int:
        """Drop every key starting with *prefix*; return how many were dropped."""
        ...


class InMemoryCacheService:
    """Process-local :class:`CacheService`.  No expiry, no size bound."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def get(self, key: str) -> Any:
        return self._data.get(key, MISSING)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def delete_prefix(self, prefix: str) -> int:
        doomed = [k for k in self._data if k.startswith(prefix)]
        for key in doomed:
            del self._data[key]
        return len(doomed)

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


@dataclass(frozen=True)
class _Entry:
    tenant_id: str
    value: Any  # None is a cached "not found"


def course_key(course_id: str) -> str:
    return f"course:{course_id}"


def schedule_key(course_id: str, day: date) -> str:
    return f"schedule:{course_id}:{day.isoformat()}"


class TeeSheetCache:
    """Tenant-checked, read-through cache for courses and active schedules."""

    def __init__(self, backend: CacheService) -> None:
        self._backend = backend
        self.hits = 0
        self.misses = 0

    async def _through(
        self,
        key: str,
        tenant_id: str,
        loader: Callable[[], Awaitable[T | None]],
    ) -> T | None:
        entry = self._backend.get(key)
        if isinstance(entry, _Entry) and entry.tenant_id == tenant_id:
            self.hits += 1
            logger.debug("Cache HIT for %s", key)
            return entry.value

        self.misses += 1
        logger.debug("Cache MISS for %s", key)
        value = await loader()
        self._backend.set(key, _Entry(tenant_id, value))
        return value

    # ── Lookups ────────────────────────────────────────────────────────

    async def course(
        self,
        tenant_id: str,
        course_id: str,
        loader: Callable[[str, str], Awaitable[Course | None]],
    ) -> Course | None:
        return await self._through(
            course_key(course_id), tenant_id, lambda: loader(tenant_id, course_id),
        )

    async def active_schedule(
        self,
        tenant_id: str,
        course_id: str,
        day: date,
        loader: Callable[[str, str, date], Awaitable[SeasonalSchedule | None]],
    ) -> SeasonalSchedule | None:
        return await self._through(
            schedule_key(course_id, day), tenant_id,
            lambda: loader(tenant_id, course_id, day),
        )

    # ── Invalidation ───────────────────────────────────────────────────

    def invalidate_course(self, course_id: str) -> None:
        self._backend.delete(course_key(course_id))

    def invalidate_schedules(self, course_id: str) -> None:
        """Forget every cached schedule lookup for *course_id*."""
        dropped = self._backend.delete_prefix(f"schedule:{course_id}:")
        logger.info("Invalidated %d cached schedule lookups for course %s", dropped, course_id)
