"""Pydantic models for the tee-sheet engine and its HTTP API."""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, Field, field_validator, model_validator

# For fields named "date", where the field name would shadow the type.
CalendarDate = date

TimeOfDay = Annotated[
    str,
    Field(pattern=r"^([01][0-9]|2[0-3]):[0-5][0-9]$", description="Time of day (HH:MM)"),
]


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _date_part(value: Any) -> Any:
    """Accept "2026-01-27" as well as "2026-01-27T00:00:00.000Z"."""
    if isinstance(value, str) and "T" in value:
        return value.split("T", 1)[0]
    if isinstance(value, datetime):
        return value.date()
    return value


# ── Enums ─────────────────────────────────────────────────────────────────


class DayType(str, Enum):
    WEEKDAY = "WEEKDAY"
    WEEKEND = "WEEKEND"
    HOLIDAY = "HOLIDAY"


class PlayFormat(str, Enum):
    EIGHTEEN_HOLE = "EIGHTEEN_HOLE"
    CROSS_TEE = "CROSS_TEE"


class BlockType(str, Enum):
    MAINTENANCE = "MAINTENANCE"
    TOURNAMENT = "TOURNAMENT"
    WEATHER = "WEATHER"
    PRIVATE = "PRIVATE"
    STARTER = "STARTER"


class FlightStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class PlayerType(str, Enum):
    MEMBER = "MEMBER"
    DEPENDENT = "DEPENDENT"
    GUEST = "GUEST"
    WALK_UP = "WALK_UP"


class RequestOption(str, Enum):
    NONE = "NONE"
    REQUEST = "REQUEST"


class Nine(str, Enum):
    FRONT = "FRONT"
    BACK = "BACK"

    @classmethod
    def for_starting_hole(cls, starting_hole: int) -> Nine:
        return cls.BACK if starting_hole == 10 else cls.FRONT


class PositionStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    BOOKED = "BOOKED"
    BLOCKED = "BLOCKED"


# ── Course configuration ──────────────────────────────────────────────────


class Course(BaseModel):
    """A golf course and its default tee-sheet hours."""

    id: str
    tenant_id: str
    name: str
    first_tee_time: TimeOfDay = "06:00"
    last_tee_time: TimeOfDay = "17:00"
    tee_interval: int = Field(8, gt=0, description="Default minutes between tee times")
    is_active: bool = True


class CourseCreate(BaseModel):
    name: str = Field(..., min_length=1)
    first_tee_time: TimeOfDay = "06:00"
    last_tee_time: TimeOfDay = "17:00"
    tee_interval: int = Field(8, gt=0)


class Interval(BaseModel):
    """Step size for a day type and time window ``[time_start, time_end)``."""

    day_type: DayType
    time_start: TimeOfDay
    time_end: TimeOfDay
    interval_min: int = Field(8, ge=5, le=15)
    is_prime_time: bool = False


class SeasonalSchedule(BaseModel):
    id: str
    course_id: str
    season_name: str
    start_date: date
    end_date: date
    first_tee_time: TimeOfDay
    last_tee_time: TimeOfDay
    play_format: PlayFormat = PlayFormat.EIGHTEEN_HOLE
    pace_of_play: int | None = None
    is_active: bool = True
    intervals: list[Interval] = Field(default_factory=list)

    def covers(self, day: date) -> bool:
        return self.is_active and self.start_date <= day <= self.end_date


class ScheduleCreate(BaseModel):
    season_name: str = Field(..., min_length=1)
    start_date: date
    end_date: date
    first_tee_time: TimeOfDay
    last_tee_time: TimeOfDay
    play_format: PlayFormat = PlayFormat.EIGHTEEN_HOLE
    pace_of_play: int | None = Field(None, ge=180, le=360)
    is_active: bool = True
    intervals: list[Interval] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_range(self) -> ScheduleCreate:
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ScheduleUpdate(BaseModel):
    season_name: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    first_tee_time: TimeOfDay | None = None
    last_tee_time: TimeOfDay | None = None
    play_format: PlayFormat | None = None
    pace_of_play: int | None = Field(None, ge=180, le=360)
    is_active: bool | None = None
    intervals: list[Interval] | None = None


# ── Blocks ────────────────────────────────────────────────────────────────


class Block(BaseModel):
    """A blackout window. Recurring blocks use only the time of day of
    ``start_time`` / ``end_time``."""

    id: str
    course_id: str
    block_type: BlockType
    reason: str | None = None
    start_time: datetime
    end_time: datetime
    is_recurring: bool = False
    recurring_pattern: str | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def to_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class BlockCreate(BaseModel):
    block_type: BlockType
    reason: str | None = None
    start_time: datetime
    end_time: datetime
    is_recurring: bool = False
    recurring_pattern: str | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def to_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @model_validator(mode="after")
    def check_window(self) -> BlockCreate:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        if self.is_recurring and not self.recurring_pattern:
            raise ValueError("recurring blocks need a recurring_pattern")
        return self


class BlockInfo(BaseModel):
    id: str
    block_type: BlockType
    reason: str | None = None


# ── Flights ───────────────────────────────────────────────────────────────


class PlayerInput(BaseModel):
    position: int
    player_type: PlayerType
    name: str | None = Field(None, description="Display name for the tee sheet")
    member_id: str | None = None
    dependent_id: str | None = None
    guest_name: str | None = None
    guest_email: str | None = None
    guest_phone: str | None = None
    cart_request: RequestOption = RequestOption.NONE
    caddy_request: RequestOption = RequestOption.NONE
    rental_request: RequestOption = RequestOption.NONE


class Player(PlayerInput):
    id: str
    checked_in: bool = False
    checked_in_at: datetime | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.guest_name or "Unknown"


class Flight(BaseModel):
    """A tee-time booking party of 1–4 players."""

    id: str
    tenant_id: str
    course_id: str
    booking_number: str | None = None
    tee_date: date
    tee_time: TimeOfDay
    starting_hole: int = 1
    holes: int = 18
    status: FlightStatus = FlightStatus.CONFIRMED
    players: list[Player] = Field(default_factory=list)
    notes: str | None = None
    confirmed_at: datetime | None = None
    checked_in_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    cancel_reason: str | None = None
    cancelled_at: datetime | None = None
    cancelled_by: str | None = None
    created_at: datetime
    updated_at: datetime

    @property
    def nine(self) -> Nine:
        return Nine.for_starting_hole(self.starting_hole)


class FlightCreate(BaseModel):
    course_id: str
    tee_date: date
    tee_time: TimeOfDay
    starting_hole: int = 1
    holes: int = 18
    players: list[PlayerInput]
    notes: str | None = None

    @field_validator("tee_date", mode="before")
    @classmethod
    def normalize_tee_date(cls, value: Any) -> Any:
        return _date_part(value)


class FlightUpdate(BaseModel):
    holes: int | None = None
    notes: str | None = None
    status: FlightStatus | None = None


class FlightPlayersUpdate(BaseModel):
    players: list[PlayerInput]


class FlightCancel(BaseModel):
    reason: str = Field(..., min_length=1)


# ── Events ────────────────────────────────────────────────────────────────


class DomainEvent(BaseModel):
    """Immutable audit record."""

    id: str | None = None
    tenant_id: str
    aggregate_type: str
    aggregate_id: str
    event_type: str
    payload: dict[str, Any] = Field(default_factory=dict)
    user_id: str | None = None
    user_email: str | None = None
    created_at: datetime | None = None


# ── Tee-sheet views ───────────────────────────────────────────────────────


class BookedBy(BaseModel):
    id: str
    name: str
    member_id: str | None = None


class BookingGroup(BaseModel):
    id: str
    group_number: int
    booked_by: BookedBy
    player_ids: list[str]


class AggregatedBooking(BaseModel):
    """All flights sharing one slot, presented as a single booking."""

    id: str
    booking_number: str | None = None
    tee_date: date
    tee_time: str
    holes: int
    starting_hole: int
    status: FlightStatus
    notes: str | None = None
    players: list[Player]
    booking_ids: list[str]
    booking_groups: list[BookingGroup]


class TeeSheetSlot(BaseModel):
    time: str
    nine: Nine = Nine.FRONT
    course_id: str
    date: CalendarDate
    is_prime_time: bool = False
    available: bool
    blocked: bool = False
    block_info: BlockInfo | None = None
    booking: AggregatedBooking | None = None


class PlayerSummary(BaseModel):
    id: str
    name: str
    type: PlayerType
    member_id: str | None = None


class PositionOccupancy(BaseModel):
    position: int
    status: PositionStatus
    player: PlayerSummary | None = None


class WeekViewOccupancySlot(BaseModel):
    date: CalendarDate
    time: str
    nine: Nine
    is_blocked: bool
    positions: list[PositionOccupancy]


# ── Misc ──────────────────────────────────────────────────────────────────


class Actor(BaseModel):
    """The authenticated caller: who acts, and for which tenant."""

    user_id: str
    email: str | None = None
    tenant_id: str


class HealthResponse(BaseModel):
    status: str
    version: str
    database: str
    timestamp: datetime
