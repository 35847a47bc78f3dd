"""
Flight lifecycle.

    PENDING → CONFIRMED → CHECKED_IN → IN_PROGRESS → COMPLETED

CANCELLED and NO_SHOW are terminal and reachable from every state before
COMPLETED.  Flights are never deleted: cancelling is a status change that
stamps who cancelled, when and why.  Every change is recorded as a domain
event on the flight.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone

from teesheet.config import MAX_PLAYERS_PER_SLOT
from teesheet.db import TeeSheetStore
from teesheet.errors import Conflict, InvalidRequest, NotFound, store_errors
from teesheet.models import (
    Actor,
    DomainEvent,
    Flight,
    FlightStatus,
    FlightUpdate,
    PlayerInput,
    PlayerType,
)
from teesheet.services.events import FLIGHT_AGGREGATE, EventSink, flight_event
from teesheet.services.line_items import LineItemGenerator, generate_line_items

logger = logging.getLogger(__name__)

TERMINAL_STATES = frozenset({FlightStatus.COMPLETED, FlightStatus.CANCELLED, FlightStatus.NO_SHOW})

_EXITS = frozenset({FlightStatus.CANCELLED, FlightStatus.NO_SHOW})

TRANSITIONS: dict[FlightStatus, frozenset[FlightStatus]] = {
    FlightStatus.PENDING: frozenset({FlightStatus.CONFIRMED}) | _EXITS,
    FlightStatus.CONFIRMED: frozenset({FlightStatus.CHECKED_IN}) | _EXITS,
    FlightStatus.CHECKED_IN: frozenset({FlightStatus.IN_PROGRESS}) | _EXITS,
    FlightStatus.IN_PROGRESS: frozenset({FlightStatus.COMPLETED}) | _EXITS,
    FlightStatus.COMPLETED: frozenset(),
    FlightStatus.CANCELLED: frozenset(),
    FlightStatus.NO_SHOW: frozenset(),
}

# Timestamp column stamped when a flight enters the status.
_STAMPS = {
    FlightStatus.CONFIRMED: "confirmed_at",
    FlightStatus.IN_PROGRESS: "started_at",
    FlightStatus.COMPLETED: "completed_at",
}

VALID_HOLES = (9, 18)
VALID_STARTING_HOLES = (1, 10)


def can_transition(current: FlightStatus, target: FlightStatus) -> bool:
    return target in TRANSITIONS[current]


def ensure_transition(current: FlightStatus, target: FlightStatus) -> None:
    if not can_transition(current, target):
        raise InvalidRequest(
            f"Cannot change flight status from {current.value} to {target.value}"
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_players(
    players: Sequence[PlayerInput], max_players: int = MAX_PLAYERS_PER_SLOT,
) -> list[PlayerInput]:
    """Check a flight's player list and return it normalized, by position.

    Positions must be unique within the list and between 1 and
    *max_players*; each player's identity must match its type.  Identity
    fields that do not belong to the type are dropped.
    """
    if not players:
        raise InvalidRequest("A flight needs at least one player")
    if len(players) > max_players:
        raise InvalidRequest(f"Maximum {max_players} players per tee time")

    seen: set[int] = set()
    normalized = []
    for player in players:
        if not 1 <= player.position <= max_players:
            raise InvalidRequest(f"Player position must be between 1 and {max_players}")
        if player.position in seen:
            raise InvalidRequest(f"Duplicate player position {player.position}")
        seen.add(player.position)

        match player.player_type:
            case PlayerType.MEMBER:
                if not player.member_id:
                    raise InvalidRequest(f"Member at position {player.position} needs a member_id")
                update = {"dependent_id": None}
            case PlayerType.DEPENDENT:
                if not player.dependent_id:
                    raise InvalidRequest(
                        f"Dependent at position {player.position} needs a dependent_id"
                    )
                update = {"member_id": None}
            case PlayerType.GUEST | PlayerType.WALK_UP:
                if not player.guest_name:
                    raise InvalidRequest(f"Guest at position {player.position} needs a guest_name")
                update = {"member_id": None, "dependent_id": None}
        normalized.append(player.model_copy(update=update))

    return sorted(normalized, key=lambda p: p.position)


def validate_holes(holes: int) -> None:
    if holes not in VALID_HOLES:
        raise InvalidRequest("Holes must be 9 or 18")


class FlightLifecycle:
    """Reads and changes existing flights."""

    def __init__(
        self,
        store: TeeSheetStore,
        events: EventSink,
        *,
        line_items: LineItemGenerator | None = None,
        max_players: int = MAX_PLAYERS_PER_SLOT,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._events = events
        self._line_items = line_items
        self._max_players = max_players
        self._clock = clock

    async def _emit(self, event: DomainEvent) -> None:
        """Append *event*; the change it records is already committed."""
        try:
            await self._events.append(event)
        except Exception:
            logger.exception(
                "Failed to append %s event for %s %s",
                event.event_type, event.aggregate_type, event.aggregate_id,
            )

    async def get_flight(self, tenant_id: str, flight_id: str) -> Flight:
        with store_errors():
            flight = await self._store.get_flight(tenant_id, flight_id)
        if flight is None:
            raise NotFound("Tee time not found")
        return flight

    async def list_events(self, tenant_id: str, flight_id: str) -> list[DomainEvent]:
        await self.get_flight(tenant_id, flight_id)
        with store_errors():
            return await self._events.list_for_aggregate(tenant_id, FLIGHT_AGGREGATE, flight_id)

    async def update_flight(self, actor: Actor, flight_id: str, body: FlightUpdate) -> Flight:
        """Change holes, notes and/or status.

        Check-in and cancellation have their own operations because they
        stamp more than the status.
        """
        flight = await self.get_flight(actor.tenant_id, flight_id)
        changes: dict[str, object] = {}

        if body.holes is not None:
            validate_holes(body.holes)
            changes["holes"] = body.holes
        if body.notes is not None:
            changes["notes"] = body.notes
        if body.status is not None and body.status != flight.status:
            if body.status == FlightStatus.CHECKED_IN:
                raise InvalidRequest("Use check-in to check a flight in")
            if body.status == FlightStatus.CANCELLED:
                raise InvalidRequest("Use cancel to cancel a flight")
            ensure_transition(flight.status, body.status)
            changes["status"] = body.status
            stamp = _STAMPS.get(body.status)
            if stamp:
                changes[stamp] = self._clock()

        if changes:
            expected = flight.status if "status" in changes else None
            with store_errors():
                written = await self._store.update_flight(
                    flight_id, expected_status=expected, **changes,
                )
            if not written:
                raise Conflict("Flight status changed while updating, reload and try again")
            await self._emit(
                flight_event(actor, flight_id, "UPDATED", body.model_dump(mode="json", exclude_none=True))
            )
        return await self.get_flight(actor.tenant_id, flight_id)

    async def update_flight_players(
        self, actor: Actor, flight_id: str, players: Sequence[PlayerInput],
    ) -> Flight:
        """Replace the flight's players.

        Only the per-flight limit is checked; the slot lock is not taken.
        """
        flight = await self.get_flight(actor.tenant_id, flight_id)
        if flight.status in TERMINAL_STATES:
            raise InvalidRequest(f"Cannot change players of a {flight.status.value.lower()} flight")
        normalized = validate_players(players, self._max_players)

        with store_errors():
            await self._store.replace_players(flight_id, normalized)
        updated = await self.get_flight(actor.tenant_id, flight_id)

        await generate_line_items(self._line_items, updated)
        await self._emit(
            flight_event(
                actor, flight_id, "PLAYERS_UPDATED",
                {"players": [p.model_dump(mode="json") for p in normalized]},
            )
        )
        logger.info("Replaced players of %s (%d players)", flight.booking_number, len(normalized))
        return updated

    async def _compare_and_set(
        self,
        tenant_id: str,
        flight_id: str,
        check: Callable[[Flight], None],
        write: Callable[[Flight], Awaitable[bool]],
    ) -> Flight:
        """Run *check* on a fresh read, then *write* conditioned on that read.

        A write that finds the status changed underneath re-reads and
        re-checks.  Statuses only move forward, so this ends after at most
        one round per status.
        """
        for _ in range(len(FlightStatus)):
            flight = await self.get_flight(tenant_id, flight_id)
            check(flight)
            with store_errors():
                if await write(flight):
                    return flight
            logger.info("Status of %s changed concurrently, re-checking", flight.booking_number)
        raise Conflict("This tee time is being changed by another request")

    async def cancel_flight(self, actor: Actor, flight_id: str, reason: str) -> Flight:
        def check(flight: Flight) -> None:
            if flight.status == FlightStatus.CANCELLED:
                raise InvalidRequest("Flight is already cancelled")
            ensure_transition(flight.status, FlightStatus.CANCELLED)

        async def write(flight: Flight) -> bool:
            return await self._store.update_flight(
                flight_id,
                expected_status=flight.status,
                status=FlightStatus.CANCELLED,
                cancel_reason=reason,
                cancelled_at=self._clock(),
                cancelled_by=actor.user_id,
            )

        flight = await self._compare_and_set(actor.tenant_id, flight_id, check, write)
        await self._emit(flight_event(actor, flight_id, "CANCELLED", {"reason": reason}))
        logger.info("Cancelled %s: %s", flight.booking_number, reason)
        return await self.get_flight(actor.tenant_id, flight_id)

    async def checkin_flight(self, actor: Actor, flight_id: str) -> Flight:
        """Check in a confirmed flight and every one of its players."""

        def check(flight: Flight) -> None:
            if flight.status != FlightStatus.CONFIRMED:
                raise InvalidRequest("Only confirmed flights can be checked in")

        async def write(flight: Flight) -> bool:
            return await self._store.check_in_flight(flight_id, self._clock())

        flight = await self._compare_and_set(actor.tenant_id, flight_id, check, write)
        await self._emit(flight_event(actor, flight_id, "CHECKED_IN"))
        logger.info("Checked in %s", flight.booking_number)
        return await self.get_flight(actor.tenant_id, flight_id)
