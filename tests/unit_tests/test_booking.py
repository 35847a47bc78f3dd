"""Tests for flight booking: capacity, locking, blocks and side effects."""

import asyncio
from datetime import date

import pytest

from teesheet.errors import Conflict, InvalidRequest, NotFound
from teesheet.models import FlightStatus, PlayerInput, PlayerType
from teesheet.services.booking import BookingCoordinator, capacity_message
from teesheet.services.events import FLIGHT_AGGREGATE
from teesheet.services.locks import slot_lock_key
from tests.mocks.models import (
    COURSE_CREATE,
    MOCK_ACTOR,
    MOCK_ACTOR_OTHER_TENANT,
    TENANT,
    WEEKDAY,
    make_block_create,
    make_flight_create,
    make_guest,
    make_players,
)
from tests.mocks.services import FailingEventSink, FailingLineItemGenerator


def test_capacity_message():
    assert capacity_message(0) == "This tee time is fully booked"
    assert capacity_message(1) == "Only 1 position available at this tee time"
    assert capacity_message(3) == "Only 3 positions available at this tee time"


# ── Happy path ─────────────────────────────────────────────────────────────


class TestCreateFlight:
    @pytest.mark.asyncio
    async def test_books_confirmed_flight(self, booking, course, line_items):
        flight = await booking.create_flight(MOCK_ACTOR, make_flight_create(course.id, players=2))

        assert flight.status == FlightStatus.CONFIRMED
        assert flight.tenant_id == TENANT
        assert flight.tee_date == WEEKDAY
        assert flight.tee_time == "07:04"
        assert [p.position for p in flight.players] == [1, 2]
        assert flight.confirmed_at is not None
        assert line_items.flights == [flight]

    @pytest.mark.asyncio
    async def test_booking_numbers_are_sequential(self, booking, course):
        first = await booking.create_flight(MOCK_ACTOR, make_flight_create(course.id, players=1))
        second = await booking.create_flight(
            MOCK_ACTOR, make_flight_create(course.id, players=1, tee_time="07:12"),
        )
        assert first.booking_number == "TT-2026-00001"
        assert second.booking_number == "TT-2026-00002"

    @pytest.mark.asyncio
    async def test_booking_numbers_are_per_tenant(self, booking, store, course):
        other_course = await store.create_course(MOCK_ACTOR_OTHER_TENANT.tenant_id, COURSE_CREATE)
        await booking.create_flight(MOCK_ACTOR, make_flight_create(course.id, players=1))
        other = await booking.create_flight(
            MOCK_ACTOR_OTHER_TENANT, make_flight_create(other_course.id, players=1),
        )
        assert other.booking_number == "TT-2026-00001"

    @pytest.mark.asyncio
    async def test_records_created_event(self, booking, store, course):
        flight = await booking.create_flight(MOCK_ACTOR, make_flight_create(course.id))
        events = await store.list_events(TENANT, FLIGHT_AGGREGATE, flight.id)

        assert [e.event_type for e in events] == ["CREATED"]
        assert events[0].user_id == MOCK_ACTOR.user_id
        assert events[0].payload["booking_number"] == flight.booking_number

    @pytest.mark.asyncio
    async def test_lock_released_after_booking(self, booking, course, locks):
        body = make_flight_create(course.id)
        await booking.create_flight(MOCK_ACTOR, body)
        assert not locks.is_held(slot_lock_key(course.id, body.tee_date, body.tee_time))

    @pytest.mark.asyncio
    async def test_guest_identity_is_kept(self, booking, course):
        body = make_flight_create(course.id, players=1)
        body.players.append(make_guest(2))
        flight = await booking.create_flight(MOCK_ACTOR, body)
        assert flight.players[1].guest_name == "Jane Guest"
        assert flight.players[1].member_id is None


# ── Capacity ───────────────────────────────────────────────────────────────


class TestCapacity:
    @pytest.mark.asyncio
    async def test_second_party_over_capacity(self, booking, course):
        await booking.create_flight(MOCK_ACTOR, make_flight_create(course.id, players=2))

        with pytest.raises(Conflict) as exc_info:
            await booking.create_flight(MOCK_ACTOR, make_flight_create(course.id, players=3))

        assert exc_info.value.remaining_capacity == 2
        assert exc_info.value.message == "Only 2 positions available at this tee time"

    @pytest.mark.asyncio
    async def test_parties_fill_slot_exactly(self, booking, course):
        await booking.create_flight(MOCK_ACTOR, make_flight_create(course.id, players=2))
        await booking.create_flight(MOCK_ACTOR, make_flight_create(course.id, players=2))

        with pytest.raises(Conflict, match="fully booked") as exc_info:
            await booking.create_flight(MOCK_ACTOR, make_flight_create(course.id, players=1))
        assert exc_info.value.remaining_capacity == 0

    @pytest.mark.asyncio
    async def test_nines_have_separate_capacity(self, booking, course):
        await booking.create_flight(MOCK_ACTOR, make_flight_create(course.id, players=4))
        back = await booking.create_flight(
            MOCK_ACTOR, make_flight_create(course.id, players=4, starting_hole=10),
        )
        assert back.starting_hole == 10

    @pytest.mark.asyncio
    async def test_cancelled_flights_free_their_positions(self, booking, lifecycle, course):
        flight = await booking.create_flight(MOCK_ACTOR, make_flight_create(course.id, players=4))
        await lifecycle.cancel_flight(MOCK_ACTOR, flight.id, "Rain")

        again = await booking.create_flight(MOCK_ACTOR, make_flight_create(course.id, players=4))
        assert again.status == FlightStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_concurrent_bookings_one_winner(self, booking, store, course):
        body = make_flight_create(course.id, players=4)
        results = await asyncio.gather(
            *(booking.create_flight(MOCK_ACTOR, body) for _ in range(5)),
            return_exceptions=True,
        )

        booked = [r for r in results if not isinstance(r, BaseException)]
        rejected = [r for r in results if isinstance(r, BaseException)]
        assert len(booked) == 1
        assert all(isinstance(r, Conflict) for r in rejected)
        assert await store.count_slot_players(
            TENANT, course.id, body.tee_date, body.tee_time, 1,
        ) == 4

    @pytest.mark.asyncio
    async def test_slot_being_booked(self, booking, course, locks):
        body = make_flight_create(course.id)
        await locks.acquire(slot_lock_key(course.id, body.tee_date, body.tee_time), 30)

        with pytest.raises(Conflict, match="currently being booked"):
            await booking.create_flight(MOCK_ACTOR, body)


# ── Blocks ─────────────────────────────────────────────────────────────────


class TestBlockedTimes:
    @pytest.mark.asyncio
    async def test_blocked_time_rejected(self, booking, store, course, locks):
        block = await store.create_block(course.id, make_block_create())
        body = make_flight_create(course.id, tee_time="08:16")

        with pytest.raises(InvalidRequest) as exc_info:
            await booking.create_flight(MOCK_ACTOR, body)

        assert exc_info.value.message == "This tee time is blocked for maintenance: Greens aeration"
        assert exc_info.value.block == {
            "id": block.id, "block_type": "MAINTENANCE", "reason": "Greens aeration",
        }
        assert not locks.is_held(slot_lock_key(course.id, body.tee_date, body.tee_time))

    @pytest.mark.asyncio
    async def test_time_outside_block_books(self, booking, store, course):
        await store.create_block(course.id, make_block_create())
        flight = await booking.create_flight(MOCK_ACTOR, make_flight_create(course.id, tee_time="10:00"))
        assert flight.tee_time == "10:00"


# ── Validation ─────────────────────────────────────────────────────────────


class TestValidation:
    @pytest.mark.asyncio
    async def test_unknown_course(self, booking, course):
        with pytest.raises(NotFound, match="Course not found"):
            await booking.create_flight(MOCK_ACTOR, make_flight_create("no-such-course"))

    @pytest.mark.asyncio
    async def test_other_tenants_course(self, booking, course):
        with pytest.raises(NotFound):
            await booking.create_flight(MOCK_ACTOR_OTHER_TENANT, make_flight_create(course.id))

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"players": []}, "at least one player"),
            ({"players": make_players(5)}, "Maximum 4 players"),
            ({"starting_hole": 5}, "Starting hole must be 1 or 10"),
            ({"holes": 12}, "Holes must be 9 or 18"),
        ],
    )
    async def test_rejected_before_lock(self, booking, course, locks, overrides, message):
        body = make_flight_create(course.id, **overrides)
        with pytest.raises(InvalidRequest, match=message):
            await booking.create_flight(MOCK_ACTOR, body)
        assert locks._expiry == {}

    @pytest.mark.asyncio
    async def test_duplicate_positions(self, booking, course):
        players = make_players(2)
        players[1] = players[1].model_copy(update={"position": 1})
        with pytest.raises(InvalidRequest, match="Duplicate player position 1"):
            await booking.create_flight(MOCK_ACTOR, make_flight_create(course.id, players=players))

    @pytest.mark.asyncio
    async def test_member_needs_member_id(self, booking, course):
        players = [PlayerInput(position=1, player_type=PlayerType.MEMBER, name="No Id")]
        with pytest.raises(InvalidRequest, match="needs a member_id"):
            await booking.create_flight(MOCK_ACTOR, make_flight_create(course.id, players=players))

    @pytest.mark.asyncio
    async def test_iso_datetime_tee_date(self, booking, course):
        body = make_flight_create(course.id, tee_date="2026-01-27T00:00:00.000Z")
        flight = await booking.create_flight(MOCK_ACTOR, body)
        assert flight.tee_date == date(2026, 1, 27)


# ── Side effects ───────────────────────────────────────────────────────────


class TestSideEffects:
    @pytest.mark.asyncio
    async def test_line_item_failure_keeps_booking(
        self, store, tee_sheet, blocks, locks, events, course,
    ):
        generator = FailingLineItemGenerator()
        coordinator = BookingCoordinator(
            store, tee_sheet, blocks, locks, events, line_items=generator,
        )
        flight = await coordinator.create_flight(MOCK_ACTOR, make_flight_create(course.id))

        assert generator.calls == 1
        assert await store.get_flight(TENANT, flight.id) is not None

    @pytest.mark.asyncio
    async def test_event_failure_keeps_booking(self, store, tee_sheet, blocks, locks, course):
        coordinator = BookingCoordinator(store, tee_sheet, blocks, locks, FailingEventSink())
        flight = await coordinator.create_flight(MOCK_ACTOR, make_flight_create(course.id))

        stored = await store.get_flight(TENANT, flight.id)
        assert stored is not None
        assert stored.booking_number == flight.booking_number
