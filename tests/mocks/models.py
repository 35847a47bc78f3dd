"""
Pre-built model instances for use in tests.

Import individual fixtures or use the factory helpers to create
custom variants:

    from tests.mocks.models import MOCK_ACTOR, make_flight_create, make_players
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from uuid import UUID, uuid5

from teesheet.models import (
    Actor,
    BlockCreate,
    BlockType,
    CourseCreate,
    DayType,
    FlightCreate,
    Interval,
    PlayerInput,
    PlayerType,
    PlayFormat,
    ScheduleCreate,
)

# ── Deterministic UUIDs ────────────────────────────────────────────────────
# Namespace for generating stable test UUIDs
_TEST_NS = UUID("00000000-0000-0000-0000-000000000000")


def _uuid(name: str) -> UUID:
    return uuid5(_TEST_NS, name)


# ── Actors ─────────────────────────────────────────────────────────────────

TENANT = "club-alpha"
OTHER_TENANT = "club-beta"

MOCK_ACTOR = Actor(
    user_id=str(_uuid("staff-1")),
    email="starter@alpha-golf.example",
    tenant_id=TENANT,
)

MOCK_ACTOR_OTHER_TENANT = Actor(
    user_id=str(_uuid("staff-2")),
    email="starter@beta-golf.example",
    tenant_id=OTHER_TENANT,
)

# ── Dates ──────────────────────────────────────────────────────────────────

# 2026-01-27 is a Tuesday, 2026-01-31 a Saturday.
WEEKDAY = date(2026, 1, 27)
SATURDAY = date(2026, 1, 31)
FIXED_NOW = datetime(2026, 1, 20, 9, 30, tzinfo=timezone.utc)

# ── Courses ────────────────────────────────────────────────────────────────

COURSE_CREATE = CourseCreate(
    name="Championship Course",
    first_tee_time="06:00",
    last_tee_time="17:00",
    tee_interval=8,
)

# ── Schedules ──────────────────────────────────────────────────────────────

WEEKDAY_INTERVALS = [
    Interval(day_type=DayType.WEEKDAY, time_start="06:00", time_end="09:00",
             interval_min=10, is_prime_time=True),
    Interval(day_type=DayType.WEEKDAY, time_start="09:00", time_end="18:00", interval_min=8),
    Interval(day_type=DayType.WEEKEND, time_start="06:00", time_end="18:00",
             interval_min=12, is_prime_time=True),
]


def make_schedule_create(**overrides) -> ScheduleCreate:
    defaults = dict(
        season_name="Summer",
        start_date=date(2026, 1, 1),
        end_date=date(2026, 3, 31),
        first_tee_time="07:00",
        last_tee_time="08:00",
        play_format=PlayFormat.EIGHTEEN_HOLE,
        intervals=[],
    )
    defaults.update(overrides)
    return ScheduleCreate(**defaults)


# ── Blocks ─────────────────────────────────────────────────────────────────


def make_block_create(**overrides) -> BlockCreate:
    defaults = dict(
        block_type=BlockType.MAINTENANCE,
        reason="Greens aeration",
        start_time=datetime(2026, 1, 27, 8, 0, tzinfo=timezone.utc),
        end_time=datetime(2026, 1, 27, 10, 0, tzinfo=timezone.utc),
    )
    defaults.update(overrides)
    return BlockCreate(**defaults)


# ── Players / flights ──────────────────────────────────────────────────────


def make_player_input(position: int = 1, **overrides) -> PlayerInput:
    defaults = dict(
        position=position,
        player_type=PlayerType.MEMBER,
        name=f"Member {position}",
        member_id=f"M-{position:03d}",
    )
    defaults.update(overrides)
    return PlayerInput(**defaults)


def make_players(count: int, *, first_position: int = 1) -> list[PlayerInput]:
    return [make_player_input(first_position + i) for i in range(count)]


def make_guest(position: int, name: str = "Jane Guest") -> PlayerInput:
    return PlayerInput(
        position=position,
        player_type=PlayerType.GUEST,
        guest_name=name,
        guest_email="guest@example.com",
    )


def make_flight_create(
    course_id: str, players: int | list[PlayerInput] = 2, **overrides,
) -> FlightCreate:
    defaults = dict(
        course_id=course_id,
        tee_date=WEEKDAY,
        tee_time="07:04",
        starting_hole=1,
        holes=18,
        players=make_players(players) if isinstance(players, int) else players,
    )
    defaults.update(overrides)
    return FlightCreate(**defaults)
