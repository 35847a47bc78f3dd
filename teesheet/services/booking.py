"""
Booking coordinator – the only write path that creates flights.

Several flights may share one slot-key (course, date, time, nine) as long
as their combined players stay within the slot's capacity.  Two callers
must never both see "room for one more" and both commit, so everything
from the block check to the insert runs while holding the slot lock:

    acquire lock (single attempt, TTL-bounded)
      → re-check blocks
      → re-count players at the slot-key from the database
      → allocate booking number + insert flight and players (one transaction)
      → line items (failure tolerated) and CREATED event
    release lock (always)

Malformed requests are rejected before the lock is ever taken.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from uuid import uuid4

from teesheet.config import MAX_PLAYERS_PER_SLOT, SLOT_LOCK_TTL_SECONDS
from teesheet.db import TeeSheetStore
from teesheet.errors import Conflict, InvalidRequest, store_errors
from teesheet.models import Actor, DomainEvent, Flight, FlightCreate, FlightStatus
from teesheet.services.blocks import BlockRegistry, block_info, describe_block
from teesheet.services.events import EventSink, flight_event
from teesheet.services.lifecycle import VALID_STARTING_HOLES, validate_holes, validate_players
from teesheet.services.line_items import LineItemGenerator, generate_line_items
from teesheet.services.locks import LockService, hold_lock, slot_lock_key
from teesheet.services.tee_sheet import TeeSheetService

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def capacity_message(remaining: int) -> str:
    if remaining <= 0:
        return "This tee time is fully booked"
    return f"Only {remaining} position{'' if remaining == 1 else 's'} available at this tee time"


class BookingCoordinator:
    """Creates flights under the slot lock."""

    def __init__(
        self,
        store: TeeSheetStore,
        tee_sheet: TeeSheetService,
        blocks: BlockRegistry,
        locks: LockService,
        events: EventSink,
        *,
        line_items: LineItemGenerator | None = None,
        lock_ttl: float = SLOT_LOCK_TTL_SECONDS,
        max_players: int = MAX_PLAYERS_PER_SLOT,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._tee_sheet = tee_sheet
        self._blocks = blocks
        self._locks = locks
        self._events = events
        self._line_items = line_items
        self._lock_ttl = lock_ttl
        self._max_players = max_players
        self._clock = clock

    async def create_flight(self, actor: Actor, body: FlightCreate) -> Flight:
        tenant_id = actor.tenant_id
        players = validate_players(body.players, self._max_players)
        if body.starting_hole not in VALID_STARTING_HOLES:
            raise InvalidRequest("Starting hole must be 1 or 10")
        validate_holes(body.holes)
        with store_errors():
            course = await self._tee_sheet.get_course(tenant_id, body.course_id)

        key = slot_lock_key(course.id, body.tee_date, body.tee_time)
        with store_errors():
            async with hold_lock(self._locks, key, self._lock_ttl):
                block = await self._blocks.find_block(
                    tenant_id, course.id, body.tee_date, body.tee_time,
                )
                if block is not None:
                    raise InvalidRequest(
                        describe_block(block), block=block_info(block).model_dump(mode="json"),
                    )

                existing = await self._store.count_slot_players(
                    tenant_id, course.id, body.tee_date, body.tee_time, body.starting_hole,
                )
                if existing + len(players) > self._max_players:
                    remaining = max(0, self._max_players - existing)
                    raise Conflict(capacity_message(remaining), remaining_capacity=remaining)

                now = self._clock()
                draft = Flight(
                    id=str(uuid4()),
                    tenant_id=tenant_id,
                    course_id=course.id,
                    tee_date=body.tee_date,
                    tee_time=body.tee_time,
                    starting_hole=body.starting_hole,
                    holes=body.holes,
                    status=FlightStatus.CONFIRMED,
                    notes=body.notes,
                    confirmed_at=now,
                    created_at=now,
                    updated_at=now,
                )
                flight = await self._store.insert_flight(draft, players, now.year)

                await generate_line_items(self._line_items, flight)
                await self._emit(
                    flight_event(
                        actor, flight.id, "CREATED",
                        {
                            "booking_number": flight.booking_number,
                            "tee_date": flight.tee_date.isoformat(),
                            "tee_time": flight.tee_time,
                            "starting_hole": flight.starting_hole,
                            "players": len(players),
                        },
                    )
                )

        logger.info(
            "Booked %s at %s %s hole %d (%d players)",
            flight.booking_number, flight.tee_date, flight.tee_time,
            flight.starting_hole, len(players),
        )
        return flight

    async def _emit(self, event: DomainEvent) -> None:
        """Best effort: the booking is committed whether or not this works."""
        try:
            await self._events.append(event)
        except Exception:
            logger.exception("Failed to append CREATED event for tee time %s", event.aggregate_id)
