"""
Slot locks.

The booking path takes one lock per slot ``slot:<course>:<date>:<time>``
before re-checking blocks and capacity.  Acquisition is a single attempt:
if the slot is held the caller gets a conflict straight away and decides
for itself whether to retry with fresh data.

Every lock carries a TTL so a crashed holder cannot block a slot forever.
Expired locks are reclaimed on the next acquire of the same key and
purged periodically by :class:`LockSweeper`.  Each acquire through
:func:`hold_lock` carries a fresh owner token, so a holder that overran
its TTL cannot release the next holder's lock.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import date
from typing import Protocol
from uuid import uuid4

from teesheet.db import TeeSheetStore
from teesheet.errors import Conflict
from teesheet.services.background import BackgroundWorker

logger = logging.getLogger(__name__)


def slot_lock_key(course_id: str, tee_date: date, tee_time: str) -> str:
    return f"slot:{course_id}:{tee_date.isoformat()}:{tee_time}"


class LockService(Protocol):
    async def acquire(self, key: str, ttl_seconds: float, token: str | None = None) -> bool:
        """Try once to take *key*; True when this caller now holds it."""
        ...

    async def release(self, key: str, token: str | None = None) -> None:
        """Drop *key*; with *token*, only while that acquire still owns it."""
        ...

    async def purge_expired(self) -> int:
        """Drop expired locks; return how many were dropped."""
        ...


class InMemoryLockService:
    """Locks shared by the tasks of one process."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._expiry: dict[str, float] = {}
        self._owners: dict[str, str | None] = {}

    async def acquire(self, key: str, ttl_seconds: float, token: str | None = None) -> bool:
        now = self._clock()
        expires_at = self._expiry.get(key)
        if expires_at is not None and expires_at > now:
            return False
        if expires_at is not None:
            logger.warning("Reclaiming expired lock %s", key)
        self._expiry[key] = now + ttl_seconds
        self._owners[key] = token
        return True

    async def release(self, key: str, token: str | None = None) -> None:
        if token is not None and self._owners.get(key) != token:
            logger.warning("Lock %s expired and was taken over, not releasing", key)
            return
        self._expiry.pop(key, None)
        self._owners.pop(key, None)

    async def purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, exp in self._expiry.items() if exp <= now]
        for key in expired:
            del self._expiry[key]
            self._owners.pop(key, None)
        return len(expired)

    def is_held(self, key: str) -> bool:
        expires_at = self._expiry.get(key)
        return expires_at is not None and expires_at > self._clock()


class SqliteLockService:
    """Locks stored in the database, shared by every process using the file."""

    def __init__(self, store: TeeSheetStore) -> None:
        self._store = store

    async def acquire(self, key: str, ttl_seconds: float, token: str | None = None) -> bool:
        return await self._store.try_lock(key, ttl_seconds, token)

    async def release(self, key: str, token: str | None = None) -> None:
        if not await self._store.unlock(key, token) and token is not None:
            logger.warning("Lock %s expired and was taken over, not releasing", key)

    async def purge_expired(self) -> int:
        return await self._store.purge_expired_locks()


@asynccontextmanager
async def hold_lock(
    locks: LockService,
    key: str,
    ttl_seconds: float,
    *,
    busy_message: str = "This tee time is currently being booked",
) -> AsyncIterator[None]:
    """Hold *key* for the body of the ``async with``; always released.

    Raises :class:`Conflict` without waiting when the key is taken.  The
    release only frees the lock this call took, never a later holder's.
    """
    token = uuid4().hex
    if not await locks.acquire(key, ttl_seconds, token):
        logger.info("Lock %s busy", key)
        raise Conflict(busy_message)
    try:
        yield
    finally:
        await locks.release(key, token)


class LockSweeper(BackgroundWorker):
    """Purges expired locks every ``interval`` seconds until stopped."""

    def __init__(self, locks: LockService, *, interval: float) -> None:
        super().__init__(interval=interval, name="lock-sweeper")
        self._locks = locks

    async def _tick(self) -> None:
        purged = await self._locks.purge_expired()
        if purged:
            logger.info("Purged %d expired slot locks", purged)
