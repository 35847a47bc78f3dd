"""
Tee-sheet projection – the public, read-only view of a course's day.

Combines generated slots, existing flights and blocks.  Nothing here takes
a lock: a slot shown as available may be gone by the time someone books
it, and the booking path re-checks everything under the slot lock.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date, timedelta

from teesheet.config import MAX_PLAYERS_PER_SLOT
from teesheet.db import TeeSheetStore
from teesheet.errors import InvalidRequest, NotFound
from teesheet.models import (
    AggregatedBooking,
    BookedBy,
    BookingGroup,
    Course,
    Flight,
    Nine,
    PlayFormat,
    Player,
    PlayerSummary,
    PositionOccupancy,
    PositionStatus,
    SeasonalSchedule,
    TeeSheetSlot,
    WeekViewOccupancySlot,
)
from teesheet.services.blocks import BlockRegistry, block_info, find_block_for_time
from teesheet.services.cache import TeeSheetCache
from teesheet.services.slot_generator import GeneratedSlot, generate_slots, to_minutes

logger = logging.getLogger(__name__)

# Longest range the week view will project in one call.
MAX_RANGE_DAYS = 31


def slots_for_day(
    course: Course, schedule: SeasonalSchedule | None, day: date,
) -> list[GeneratedSlot]:
    """Generate the day's slots from the schedule, or the course defaults."""
    first = schedule.first_tee_time if schedule else course.first_tee_time
    last = schedule.last_tee_time if schedule else course.last_tee_time
    if schedule and schedule.intervals:
        return generate_slots(first, last, intervals=schedule.intervals, on_date=day)
    return generate_slots(first, last, interval=course.tee_interval)


def _group_by_slot(flights: Sequence[Flight]) -> dict[tuple[date, str, Nine], list[Flight]]:
    grouped: dict[tuple[date, str, Nine], list[Flight]] = {}
    for flight in flights:
        grouped.setdefault((flight.tee_date, flight.tee_time, flight.nine), []).append(flight)
    return grouped


def aggregate_booking(flights: Sequence[Flight]) -> AggregatedBooking:
    """Present every flight sharing a slot as one booking.

    Metadata comes from the first flight; players from all of them.  Each
    flight becomes a booking group, booked by its first player.
    """
    first = flights[0]
    groups = []
    for number, flight in enumerate(flights, start=1):
        lead = flight.players[0] if flight.players else None
        groups.append(
            BookingGroup(
                id=flight.id,
                group_number=number,
                booked_by=BookedBy(
                    id=(lead.member_id or lead.id) if lead else "",
                    name=lead.display_name if lead else "Unknown",
                    member_id=lead.member_id if lead else None,
                ),
                player_ids=[p.id for p in flight.players],
            )
        )
    return AggregatedBooking(
        id=first.id,
        booking_number=first.booking_number,
        tee_date=first.tee_date,
        tee_time=first.tee_time,
        holes=first.holes,
        starting_hole=first.starting_hole,
        status=first.status,
        notes=first.notes,
        players=[p for f in flights for p in f.players],
        booking_ids=[f.id for f in flights],
        booking_groups=groups,
    )


def seat_players(flights: Sequence[Flight], capacity: int) -> dict[int, Player]:
    """Map grid positions 1..capacity to players.

    Positions are only unique within one flight, so a player whose own
    position is taken by an earlier flight moves to the next free one.
    """
    seats: dict[int, Player] = {}
    for flight in flights:
        for player in flight.players:
            position = player.position
            if position in seats or not 1 <= position <= capacity:
                free = [p for p in range(1, capacity + 1) if p not in seats]
                if not free:
                    logger.warning("Slot over capacity, flight %s not fully seated", flight.id)
                    break
                position = free[0]
            seats[position] = player
    return seats


class TeeSheetService:
    """Builds tee-sheet and week-view projections for a course."""

    def __init__(
        self,
        store: TeeSheetStore,
        cache: TeeSheetCache,
        blocks: BlockRegistry,
        *,
        max_players: int = MAX_PLAYERS_PER_SLOT,
    ) -> None:
        self._store = store
        self._cache = cache
        self._blocks = blocks
        self._max_players = max_players

    # ── Lookups ────────────────────────────────────────────────────────

    async def get_course(self, tenant_id: str, course_id: str) -> Course:
        course = await self._cache.course(tenant_id, course_id, self._store.get_course)
        if course is None:
            raise NotFound("Course not found")
        return course

    async def get_active_schedule_for_date(
        self, tenant_id: str, course_id: str, day: date,
    ) -> SeasonalSchedule | None:
        return await self._cache.active_schedule(
            tenant_id, course_id, day, self._store.get_active_schedule,
        )

    async def generate_slots_for(
        self, tenant_id: str, course_id: str, day: date,
    ) -> list[GeneratedSlot]:
        course = await self.get_course(tenant_id, course_id)
        schedule = await self.get_active_schedule_for_date(tenant_id, course_id, day)
        return slots_for_day(course, schedule, day)

    # ── Tee sheet ──────────────────────────────────────────────────────

    async def get_tee_sheet(self, tenant_id: str, course_id: str, day: date) -> list[TeeSheetSlot]:
        """Every slot of the day with occupancy, availability and block.

        Each time has a FRONT entry.  A BACK entry is added when the day
        runs a cross-tee format or any flight starts on the 10th.
        """
        logger.info("Tee sheet for tenant=%s course=%s date=%s", tenant_id, course_id, day)
        course = await self.get_course(tenant_id, course_id)
        schedule = await self.get_active_schedule_for_date(tenant_id, course_id, day)
        blocks = await self._blocks.get_blocks_for_date(tenant_id, course_id, day)
        flights = await self._store.list_flights(tenant_id, course_id, day, day)
        logger.info("Found %d flights and %d candidate blocks for %s", len(flights), len(blocks), day)

        by_slot = _group_by_slot(flights)
        nines = [Nine.FRONT]
        cross_tee = schedule is not None and schedule.play_format == PlayFormat.CROSS_TEE
        if cross_tee or any(f.nine == Nine.BACK for f in flights):
            nines.append(Nine.BACK)

        sheet: list[TeeSheetSlot] = []
        for slot in slots_for_day(course, schedule, day):
            block = find_block_for_time(blocks, day, slot.time)
            for nine in nines:
                booked = by_slot.get((day, slot.time, nine), [])
                booking = aggregate_booking(booked) if booked else None
                total_players = len(booking.players) if booking else 0
                sheet.append(
                    TeeSheetSlot(
                        time=slot.time,
                        nine=nine,
                        course_id=course_id,
                        date=day,
                        is_prime_time=slot.is_prime_time,
                        available=total_players < self._max_players and block is None,
                        blocked=block is not None,
                        block_info=block_info(block) if block else None,
                        booking=booking,
                    )
                )
        return sheet

    # ── Week view ──────────────────────────────────────────────────────

    async def get_week_view_occupancy(
        self,
        tenant_id: str,
        course_id: str,
        start_date: date,
        end_date: date,
        start_time: str | None = None,
        end_time: str | None = None,
    ) -> list[WeekViewOccupancySlot]:
        """Per day, slot and nine: the state of each of the four positions.

        *start_time* / *end_time* restrict the slots to ``[start, end)``.
        """
        if end_date < start_date:
            raise InvalidRequest("end_date must not be before start_date")
        if (end_date - start_date).days + 1 > MAX_RANGE_DAYS:
            raise InvalidRequest(f"Date range may span at most {MAX_RANGE_DAYS} days")

        course = await self.get_course(tenant_id, course_id)
        flights = await self._store.list_flights(tenant_id, course_id, start_date, end_date)
        blocks = await self._blocks.get_blocks_for_range(tenant_id, course_id, start_date, end_date)
        schedules = await self._store.list_schedules(
            tenant_id, course_id, active_only=True, date_from=start_date, date_to=end_date,
        )
        logger.info(
            "Week view %s..%s: %d flights, %d schedules in range",
            start_date, end_date, len(flights), len(schedules),
        )

        from_minutes = to_minutes(start_time) if start_time else None
        until_minutes = to_minutes(end_time) if end_time else None
        by_slot = _group_by_slot(flights)

        rows: list[WeekViewOccupancySlot] = []
        day = start_date
        while day <= end_date:
            schedule = next((s for s in schedules if s.covers(day)), None)
            for slot in slots_for_day(course, schedule, day):
                minutes = to_minutes(slot.time)
                if from_minutes is not None and minutes < from_minutes:
                    continue
                if until_minutes is not None and minutes >= until_minutes:
                    continue

                blocked = find_block_for_time(blocks, day, slot.time) is not None
                for nine in (Nine.FRONT, Nine.BACK):
                    seats = seat_players(by_slot.get((day, slot.time, nine), []), self._max_players)
                    rows.append(
                        WeekViewOccupancySlot(
                            date=day,
                            time=slot.time,
                            nine=nine,
                            is_blocked=blocked,
                            positions=[
                                self._position(pos, seats.get(pos), blocked)
                                for pos in range(1, self._max_players + 1)
                            ],
                        )
                    )
            day += timedelta(days=1)

        logger.info("Generated %d week view slots", len(rows))
        return rows

    @staticmethod
    def _position(position: int, player: Player | None, blocked: bool) -> PositionOccupancy:
        if blocked:
            return PositionOccupancy(position=position, status=PositionStatus.BLOCKED)
        if player is None:
            return PositionOccupancy(position=position, status=PositionStatus.AVAILABLE)
        return PositionOccupancy(
            position=position,
            status=PositionStatus.BOOKED,
            player=PlayerSummary(
                id=player.id,
                name=player.display_name,
                type=player.player_type,
                member_id=player.member_id,
            ),
        )
