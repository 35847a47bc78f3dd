"""
Block registry: blackout windows for a course.

Non-recurring blocks are absolute UTC windows.  Recurring blocks apply on
the days their pattern selects, between the times of day of their stored
start and end instants (the date part is ignored).  Blocks may overlap;
lookups return the first match in creation order.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date, datetime, time, timezone

from teesheet.db import TeeSheetStore
from teesheet.models import Block, BlockInfo
from teesheet.services.recurrence import matches_recurring_pattern
from teesheet.services.slot_generator import to_minutes

logger = logging.getLogger(__name__)


def _minutes_of_day(instant: datetime) -> int:
    instant = instant.astimezone(timezone.utc)
    return instant.hour * 60 + instant.minute


def slot_instant(day: date, tee_time: str) -> datetime:
    """The UTC instant of *tee_time* on *day*."""
    minutes = to_minutes(tee_time)
    return datetime.combine(day, time(minutes // 60, minutes % 60), tzinfo=timezone.utc)


def block_applies(block: Block, day: date, tee_time: str) -> bool:
    if block.is_recurring:
        if not matches_recurring_pattern(day, block.recurring_pattern):
            return False
        slot_minutes = to_minutes(tee_time)
        return _minutes_of_day(block.start_time) <= slot_minutes < _minutes_of_day(block.end_time)
    return block.start_time <= slot_instant(day, tee_time) < block.end_time


def find_block_for_time(blocks: Sequence[Block], day: date, tee_time: str) -> Block | None:
    """First block in *blocks* that covers *tee_time* on *day*, else None."""
    for block in blocks:
        if block_applies(block, day, tee_time):
            return block
    return None


def block_info(block: Block) -> BlockInfo:
    return BlockInfo(id=block.id, block_type=block.block_type, reason=block.reason)


def describe_block(block: Block) -> str:
    message = f"This tee time is blocked for {block.block_type.value.lower()}"
    if block.reason:
        message += f": {block.reason}"
    return message


class BlockRegistry:
    """Reads a course's blocks from the store."""

    def __init__(self, store: TeeSheetStore) -> None:
        self._store = store

    async def get_blocks_for_date(self, tenant_id: str, course_id: str, day: date) -> list[Block]:
        """Blocks that may apply on *day*: one-off blocks overlapping the UTC
        day and every recurring block of the course."""
        return await self._store.list_blocks_between(tenant_id, course_id, day, day)

    async def get_blocks_for_range(
        self, tenant_id: str, course_id: str, date_from: date, date_to: date,
    ) -> list[Block]:
        return await self._store.list_blocks_between(tenant_id, course_id, date_from, date_to)

    async def find_block(
        self, tenant_id: str, course_id: str, day: date, tee_time: str,
    ) -> Block | None:
        blocks = await self.get_blocks_for_date(tenant_id, course_id, day)
        return find_block_for_time(blocks, day, tee_time)
