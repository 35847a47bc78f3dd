"""
SQLite persistence layer using aiosqlite.

Stores courses, seasonal schedules, blocks, flights with their players,
the booking-number counters, domain events and slot locks.
Tables are created automatically on first connect.

A single connection is shared by every request task, so each public
method holds ``self._lock`` for its whole unit of work: statements from
two tasks never interleave inside one transaction.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any
from uuid import uuid4

import aiosqlite

from teesheet.models import (
    Block,
    BlockCreate,
    Course,
    CourseCreate,
    DomainEvent,
    Flight,
    FlightStatus,
    Interval,
    Player,
    PlayerInput,
    ScheduleCreate,
    SeasonalSchedule,
)

logger = logging.getLogger(__name__)


# ── Schema ────────────────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS courses (
    id              TEXT PRIMARY KEY,
    tenant_id       TEXT NOT NULL,
    name            TEXT NOT NULL,
    first_tee_time  TEXT NOT NULL,
    last_tee_time   TEXT NOT NULL,
    tee_interval    INTEGER NOT NULL,
    is_active       INTEGER NOT NULL DEFAULT 1,
    created_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_courses_tenant ON courses(tenant_id);

CREATE TABLE IF NOT EXISTS schedules (
    id              TEXT PRIMARY KEY,
    course_id       TEXT NOT NULL,
    season_name     TEXT NOT NULL,
    start_date      TEXT NOT NULL,  -- ISO date, inclusive
    end_date        TEXT NOT NULL,  -- ISO date, inclusive
    first_tee_time  TEXT NOT NULL,
    last_tee_time   TEXT NOT NULL,
    play_format     TEXT NOT NULL,
    pace_of_play    INTEGER,
    is_active       INTEGER NOT NULL DEFAULT 1,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL,
    FOREIGN KEY (course_id) REFERENCES courses(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_schedules_course ON schedules(course_id, start_date);

CREATE TABLE IF NOT EXISTS schedule_intervals (
    schedule_id     TEXT NOT NULL,
    sort_order      INTEGER NOT NULL,
    day_type        TEXT NOT NULL,
    time_start      TEXT NOT NULL,
    time_end        TEXT NOT NULL,
    interval_min    INTEGER NOT NULL,
    is_prime_time   INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (schedule_id, sort_order),
    FOREIGN KEY (schedule_id) REFERENCES schedules(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS blocks (
    id              TEXT PRIMARY KEY,
    course_id       TEXT NOT NULL,
    block_type      TEXT NOT NULL,
    reason          TEXT,
    start_time      TEXT NOT NULL,  -- UTC instant
    end_time        TEXT NOT NULL,  -- UTC instant
    is_recurring    INTEGER NOT NULL DEFAULT 0,
    recurring_pattern TEXT,
    created_at      TEXT NOT NULL,
    FOREIGN KEY (course_id) REFERENCES courses(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_blocks_course ON blocks(course_id);

CREATE TABLE IF NOT EXISTS flights (
    id              TEXT PRIMARY KEY,
    tenant_id       TEXT NOT NULL,
    course_id       TEXT NOT NULL,
    booking_number  TEXT NOT NULL,
    tee_date        TEXT NOT NULL,  -- ISO date
    tee_time        TEXT NOT NULL,  -- HH:MM
    starting_hole   INTEGER NOT NULL DEFAULT 1,
    holes           INTEGER NOT NULL DEFAULT 18,
    status          TEXT NOT NULL,
    notes           TEXT,
    confirmed_at    TEXT,
    checked_in_at   TEXT,
    started_at      TEXT,
    completed_at    TEXT,
    cancel_reason   TEXT,
    cancelled_at    TEXT,
    cancelled_by    TEXT,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL,
    UNIQUE (tenant_id, booking_number)
);

CREATE INDEX IF NOT EXISTS idx_flights_slot
    ON flights(tenant_id, course_id, tee_date, tee_time, starting_hole);

CREATE TABLE IF NOT EXISTS flight_players (
    id              TEXT PRIMARY KEY,
    flight_id       TEXT NOT NULL,
    position        INTEGER NOT NULL,
    player_type     TEXT NOT NULL,
    name            TEXT,
    member_id       TEXT,
    dependent_id    TEXT,
    guest_name      TEXT,
    guest_email     TEXT,
    guest_phone     TEXT,
    cart_request    TEXT NOT NULL DEFAULT 'NONE',
    caddy_request   TEXT NOT NULL DEFAULT 'NONE',
    rental_request  TEXT NOT NULL DEFAULT 'NONE',
    checked_in      INTEGER NOT NULL DEFAULT 0,
    checked_in_at   TEXT,
    UNIQUE (flight_id, position),
    FOREIGN KEY (flight_id) REFERENCES flights(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_players_flight ON flight_players(flight_id);

CREATE TABLE IF NOT EXISTS booking_sequences (
    tenant_id       TEXT NOT NULL,
    year            INTEGER NOT NULL,
    last_value      INTEGER NOT NULL,
    PRIMARY KEY (tenant_id, year)
);

CREATE TABLE IF NOT EXISTS domain_events (
    id              TEXT PRIMARY KEY,
    tenant_id       TEXT NOT NULL,
    aggregate_type  TEXT NOT NULL,
    aggregate_id    TEXT NOT NULL,
    event_type      TEXT NOT NULL,
    payload         TEXT NOT NULL,  -- JSON object
    user_id         TEXT,
    user_email      TEXT,
    created_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_events_aggregate
    ON domain_events(tenant_id, aggregate_type, aggregate_id);

CREATE TABLE IF NOT EXISTS slot_locks (
    key             TEXT PRIMARY KEY,
    token           TEXT,           -- set by the holder, checked on release
    expires_at      REAL NOT NULL   -- unix timestamp
);
"""


# ── Helpers ───────────────────────────────────────────────────────────────


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _ts(dt: datetime | None) -> str | None:
    """Fixed-width UTC timestamp so stored instants compare as strings."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_ts(raw: str | None) -> datetime | None:
    if raw is None:
        return None
    return datetime.fromisoformat(raw)


def _day_bounds(day: date) -> tuple[str, str]:
    """First and last instant of *day* in UTC."""
    start = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    end = start + timedelta(days=1) - timedelta(microseconds=1)
    return _ts(start), _ts(end)  # type: ignore[return-value]


def _row_to_course(row: aiosqlite.Row) -> Course:
    return Course(
        id=row["id"],
        tenant_id=row["tenant_id"],
        name=row["name"],
        first_tee_time=row["first_tee_time"],
        last_tee_time=row["last_tee_time"],
        tee_interval=row["tee_interval"],
        is_active=bool(row["is_active"]),
    )


def _row_to_interval(row: aiosqlite.Row) -> Interval:
    return Interval(
        day_type=row["day_type"],
        time_start=row["time_start"],
        time_end=row["time_end"],
        interval_min=row["interval_min"],
        is_prime_time=bool(row["is_prime_time"]),
    )


def _row_to_schedule(row: aiosqlite.Row, intervals: list[Interval]) -> SeasonalSchedule:
    return SeasonalSchedule(
        id=row["id"],
        course_id=row["course_id"],
        season_name=row["season_name"],
        start_date=row["start_date"],
        end_date=row["end_date"],
        first_tee_time=row["first_tee_time"],
        last_tee_time=row["last_tee_time"],
        play_format=row["play_format"],
        pace_of_play=row["pace_of_play"],
        is_active=bool(row["is_active"]),
        intervals=intervals,
    )


def _row_to_block(row: aiosqlite.Row) -> Block:
    return Block(
        id=row["id"],
        course_id=row["course_id"],
        block_type=row["block_type"],
        reason=row["reason"],
        start_time=_from_ts(row["start_time"]),
        end_time=_from_ts(row["end_time"]),
        is_recurring=bool(row["is_recurring"]),
        recurring_pattern=row["recurring_pattern"],
    )


def _row_to_player(row: aiosqlite.Row) -> Player:
    return Player(
        id=row["id"],
        position=row["position"],
        player_type=row["player_type"],
        name=row["name"],
        member_id=row["member_id"],
        dependent_id=row["dependent_id"],
        guest_name=row["guest_name"],
        guest_email=row["guest_email"],
        guest_phone=row["guest_phone"],
        cart_request=row["cart_request"],
        caddy_request=row["caddy_request"],
        rental_request=row["rental_request"],
        checked_in=bool(row["checked_in"]),
        checked_in_at=_from_ts(row["checked_in_at"]),
    )


def _row_to_flight(row: aiosqlite.Row, players: list[Player]) -> Flight:
    return Flight(
        id=row["id"],
        tenant_id=row["tenant_id"],
        course_id=row["course_id"],
        booking_number=row["booking_number"],
        tee_date=row["tee_date"],
        tee_time=row["tee_time"],
        starting_hole=row["starting_hole"],
        holes=row["holes"],
        status=row["status"],
        players=players,
        notes=row["notes"],
        confirmed_at=_from_ts(row["confirmed_at"]),
        checked_in_at=_from_ts(row["checked_in_at"]),
        started_at=_from_ts(row["started_at"]),
        completed_at=_from_ts(row["completed_at"]),
        cancel_reason=row["cancel_reason"],
        cancelled_at=_from_ts(row["cancelled_at"]),
        cancelled_by=row["cancelled_by"],
        created_at=_from_ts(row["created_at"]),
        updated_at=_from_ts(row["updated_at"]),
    )


def _row_to_event(row: aiosqlite.Row) -> DomainEvent:
    return DomainEvent(
        id=row["id"],
        tenant_id=row["tenant_id"],
        aggregate_type=row["aggregate_type"],
        aggregate_id=row["aggregate_id"],
        event_type=row["event_type"],
        payload=json.loads(row["payload"]),
        user_id=row["user_id"],
        user_email=row["user_email"],
        created_at=_from_ts(row["created_at"]),
    )


def _player_params(flight_id: str, player: PlayerInput) -> tuple[Any, ...]:
    return (
        str(uuid4()),
        flight_id,
        player.position,
        player.player_type.value,
        player.name,
        player.member_id,
        player.dependent_id,
        player.guest_name,
        player.guest_email,
        player.guest_phone,
        player.cart_request.value,
        player.caddy_request.value,
        player.rental_request.value,
    )


_INSERT_PLAYER = """
    INSERT INTO flight_players (
        id, flight_id, position, player_type, name,
        member_id, dependent_id, guest_name, guest_email, guest_phone,
        cart_request, caddy_request, rental_request
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

_FLIGHT_FIELDS = frozenset({
    "holes", "notes", "status",
    "confirmed_at", "checked_in_at", "started_at", "completed_at",
    "cancel_reason", "cancelled_at", "cancelled_by",
})


def format_booking_number(year: int, sequence: int) -> str:
    return f"TT-{year}-{sequence:05d}"


# ══════════════════════════════════════════════════════════════════════════
#                              STORE
# ══════════════════════════════════════════════════════════════════════════


class TeeSheetStore:
    """Tenant-scoped repository over one aiosqlite connection."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    # ── Lifecycle ──────────────────────────────────────────────────────

    async def connect(self) -> None:
        """Open the database and create tables if they don't exist."""
        db_path = Path(self._db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)

        self._db = await aiosqlite.connect(str(db_path))
        self._db.row_factory = aiosqlite.Row  # dict-like rows
        await self._db.execute("PRAGMA journal_mode=WAL")
        await self._db.execute("PRAGMA foreign_keys=ON")
        await self._db.execute("PRAGMA busy_timeout=5000")

        await self._db.executescript(_SCHEMA)
        await self._db.commit()
        logger.info("Database initialized at %s", db_path)

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
            logger.info("Database connection closed")

    async def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            async with self._read() as db:
                await db.execute("SELECT 1")
        except (aiosqlite.Error, AssertionError):
            return False
        return True

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Database not initialized, call connect() first"
        return self._db

    @asynccontextmanager
    async def _read(self) -> AsyncIterator[aiosqlite.Connection]:
        async with self._lock:
            yield self.db

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Serialize, then commit on success or roll back on any error."""
        async with self._lock:
            db = self.db
            try:
                yield db
            except BaseException:
                await db.rollback()
                raise
            else:
                await db.commit()

    # ══════════════════════════════════════════════════════════════════
    #                         COURSES
    # ══════════════════════════════════════════════════════════════════

    async def create_course(self, tenant_id: str, body: CourseCreate) -> Course:
        course = Course(id=str(uuid4()), tenant_id=tenant_id, **body.model_dump())
        async with self._transaction() as db:
            await db.execute(
                """
                INSERT INTO courses (
                    id, tenant_id, name, first_tee_time, last_tee_time,
                    tee_interval, is_active, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    course.id, tenant_id, course.name,
                    course.first_tee_time, course.last_tee_time,
                    course.tee_interval, int(course.is_active), _ts(_now()),
                ),
            )
        return course

    async def get_course(self, tenant_id: str, course_id: str) -> Course | None:
        async with self._read() as db:
            async with db.execute(
                "SELECT * FROM courses WHERE id = ? AND tenant_id = ?",
                (course_id, tenant_id),
            ) as cur:
                row = await cur.fetchone()
        return _row_to_course(row) if row else None

    # ══════════════════════════════════════════════════════════════════
    #                         SCHEDULES
    # ══════════════════════════════════════════════════════════════════

    async def _load_schedules(
        self, db: aiosqlite.Connection, rows: list[aiosqlite.Row],
    ) -> list[SeasonalSchedule]:
        schedules = []
        for row in rows:
            async with db.execute(
                "SELECT * FROM schedule_intervals WHERE schedule_id = ? ORDER BY sort_order",
                (row["id"],),
            ) as cur:
                intervals = [_row_to_interval(r) for r in await cur.fetchall()]
            schedules.append(_row_to_schedule(row, intervals))
        return schedules

    async def _insert_intervals(
        self, db: aiosqlite.Connection, schedule_id: str, intervals: list[Interval],
    ) -> None:
        await db.executemany(
            """
            INSERT INTO schedule_intervals (
                schedule_id, sort_order, day_type, time_start, time_end,
                interval_min, is_prime_time
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    schedule_id, index, i.day_type.value, i.time_start, i.time_end,
                    i.interval_min, int(i.is_prime_time),
                )
                for index, i in enumerate(intervals)
            ],
        )

    async def get_active_schedule(
        self, tenant_id: str, course_id: str, day: date,
    ) -> SeasonalSchedule | None:
        """The active schedule whose date range contains *day*, if any."""
        async with self._read() as db:
            async with db.execute(
                """
                SELECT s.* FROM schedules s
                JOIN courses c ON c.id = s.course_id
                WHERE s.course_id = ? AND c.tenant_id = ? AND s.is_active = 1
                  AND s.start_date <= ? AND s.end_date >= ?
                ORDER BY s.start_date
                LIMIT 1
                """,
                (course_id, tenant_id, day.isoformat(), day.isoformat()),
            ) as cur:
                rows = await cur.fetchall()
            schedules = await self._load_schedules(db, rows)
        return schedules[0] if schedules else None

    async def list_schedules(
        self,
        tenant_id: str,
        course_id: str,
        *,
        active_only: bool = False,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[SeasonalSchedule]:
        sql = """
            SELECT s.* FROM schedules s
            JOIN courses c ON c.id = s.course_id
            WHERE s.course_id = ? AND c.tenant_id = ?
        """
        params: list = [course_id, tenant_id]
        if active_only:
            sql += " AND s.is_active = 1"
        if date_to is not None:
            sql += " AND s.start_date <= ?"
            params.append(date_to.isoformat())
        if date_from is not None:
            sql += " AND s.end_date >= ?"
            params.append(date_from.isoformat())
        sql += " ORDER BY s.start_date"

        async with self._read() as db:
            async with db.execute(sql, params) as cur:
                rows = await cur.fetchall()
            return await self._load_schedules(db, rows)

    async def get_schedule(self, tenant_id: str, schedule_id: str) -> SeasonalSchedule | None:
        async with self._read() as db:
            async with db.execute(
                """
                SELECT s.* FROM schedules s
                JOIN courses c ON c.id = s.course_id
                WHERE s.id = ? AND c.tenant_id = ?
                """,
                (schedule_id, tenant_id),
            ) as cur:
                rows = await cur.fetchall()
            schedules = await self._load_schedules(db, rows)
        return schedules[0] if schedules else None

    async def create_schedule(self, course_id: str, body: ScheduleCreate) -> SeasonalSchedule:
        schedule = SeasonalSchedule(id=str(uuid4()), course_id=course_id, **body.model_dump())
        now = _ts(_now())
        async with self._transaction() as db:
            await db.execute(
                """
                INSERT INTO schedules (
                    id, course_id, season_name, start_date, end_date,
                    first_tee_time, last_tee_time, play_format, pace_of_play,
                    is_active, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    schedule.id, course_id, schedule.season_name,
                    schedule.start_date.isoformat(), schedule.end_date.isoformat(),
                    schedule.first_tee_time, schedule.last_tee_time,
                    schedule.play_format.value, schedule.pace_of_play,
                    int(schedule.is_active), now, now,
                ),
            )
            await self._insert_intervals(db, schedule.id, schedule.intervals)
        return schedule

    async def save_schedule(self, schedule: SeasonalSchedule) -> SeasonalSchedule:
        """Overwrite an existing schedule, replacing its interval table."""
        async with self._transaction() as db:
            await db.execute(
                """
                UPDATE schedules SET
                    season_name = ?, start_date = ?, end_date = ?,
                    first_tee_time = ?, last_tee_time = ?, play_format = ?,
                    pace_of_play = ?, is_active = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    schedule.season_name,
                    schedule.start_date.isoformat(), schedule.end_date.isoformat(),
                    schedule.first_tee_time, schedule.last_tee_time,
                    schedule.play_format.value, schedule.pace_of_play,
                    int(schedule.is_active), _ts(_now()), schedule.id,
                ),
            )
            await db.execute(
                "DELETE FROM schedule_intervals WHERE schedule_id = ?", (schedule.id,)
            )
            await self._insert_intervals(db, schedule.id, schedule.intervals)
        return schedule

    async def delete_schedule(self, schedule_id: str) -> bool:
        async with self._transaction() as db:
            cur = await db.execute("DELETE FROM schedules WHERE id = ?", (schedule_id,))
        return cur.rowcount > 0

    # ══════════════════════════════════════════════════════════════════
    #                          BLOCKS
    # ══════════════════════════════════════════════════════════════════

    async def create_block(self, course_id: str, body: BlockCreate) -> Block:
        block = Block(id=str(uuid4()), course_id=course_id, **body.model_dump())
        async with self._transaction() as db:
            await db.execute(
                """
                INSERT INTO blocks (
                    id, course_id, block_type, reason, start_time, end_time,
                    is_recurring, recurring_pattern, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    block.id, course_id, block.block_type.value, block.reason,
                    _ts(block.start_time), _ts(block.end_time),
                    int(block.is_recurring), block.recurring_pattern, _ts(_now()),
                ),
            )
        return block

    async def list_blocks(self, tenant_id: str, course_id: str) -> list[Block]:
        async with self._read() as db:
            async with db.execute(
                """
                SELECT b.* FROM blocks b
                JOIN courses c ON c.id = b.course_id
                WHERE b.course_id = ? AND c.tenant_id = ?
                ORDER BY b.rowid
                """,
                (course_id, tenant_id),
            ) as cur:
                rows = await cur.fetchall()
        return [_row_to_block(r) for r in rows]

    async def list_blocks_between(
        self, tenant_id: str, course_id: str, date_from: date, date_to: date,
    ) -> list[Block]:
        """Blocks overlapping the UTC days *date_from*..*date_to* plus every
        recurring block of the course, in insertion order."""
        range_start, _ = _day_bounds(date_from)
        _, range_end = _day_bounds(date_to)
        async with self._read() as db:
            async with db.execute(
                """
                SELECT b.* FROM blocks b
                JOIN courses c ON c.id = b.course_id
                WHERE b.course_id = ? AND c.tenant_id = ?
                  AND (
                    b.is_recurring = 1
                    OR (b.start_time <= ? AND b.end_time >= ?)
                  )
                ORDER BY b.rowid
                """,
                (course_id, tenant_id, range_end, range_start),
            ) as cur:
                rows = await cur.fetchall()
        return [_row_to_block(r) for r in rows]

    async def delete_block(self, tenant_id: str, block_id: str) -> bool:
        async with self._transaction() as db:
            cur = await db.execute(
                """
                DELETE FROM blocks WHERE id = ? AND course_id IN (
                    SELECT id FROM courses WHERE tenant_id = ?
                )
                """,
                (block_id, tenant_id),
            )
        return cur.rowcount > 0

    # ══════════════════════════════════════════════════════════════════
    #                          FLIGHTS
    # ══════════════════════════════════════════════════════════════════

    async def _load_flights(
        self, db: aiosqlite.Connection, rows: list[aiosqlite.Row],
    ) -> list[Flight]:
        """Attach players with one query for all flights."""
        if not rows:
            return []
        ids = [row["id"] for row in rows]
        placeholders = ",".join("?" for _ in ids)
        async with db.execute(
            f"SELECT * FROM flight_players WHERE flight_id IN ({placeholders}) "
            "ORDER BY position",
            ids,
        ) as cur:
            player_rows = await cur.fetchall()

        players_by_flight: dict[str, list[Player]] = {}
        for prow in player_rows:
            players_by_flight.setdefault(prow["flight_id"], []).append(_row_to_player(prow))
        return [_row_to_flight(row, players_by_flight.get(row["id"], [])) for row in rows]

    async def get_flight(self, tenant_id: str, flight_id: str) -> Flight | None:
        async with self._read() as db:
            async with db.execute(
                "SELECT * FROM flights WHERE id = ? AND tenant_id = ?",
                (flight_id, tenant_id),
            ) as cur:
                rows = await cur.fetchall()
            flights = await self._load_flights(db, rows)
        return flights[0] if flights else None

    async def list_flights(
        self,
        tenant_id: str,
        course_id: str,
        date_from: date,
        date_to: date,
        *,
        include_cancelled: bool = False,
    ) -> list[Flight]:
        """Flights for the inclusive date range ordered by date, time, creation."""
        sql = """
            SELECT * FROM flights
            WHERE tenant_id = ? AND course_id = ? AND tee_date >= ? AND tee_date <= ?
        """
        params: list = [tenant_id, course_id, date_from.isoformat(), date_to.isoformat()]
        if not include_cancelled:
            sql += " AND status != ?"
            params.append(FlightStatus.CANCELLED.value)
        sql += " ORDER BY tee_date, tee_time, created_at, rowid"

        async with self._read() as db:
            async with db.execute(sql, params) as cur:
                rows = await cur.fetchall()
            return await self._load_flights(db, rows)

    async def count_slot_players(
        self,
        tenant_id: str,
        course_id: str,
        tee_date: date,
        tee_time: str,
        starting_hole: int,
    ) -> int:
        """Players already booked at one slot-key, ignoring cancelled flights."""
        async with self._read() as db:
            async with db.execute(
                """
                SELECT COUNT(p.id) AS total FROM flights f
                JOIN flight_players p ON p.flight_id = f.id
                WHERE f.tenant_id = ? AND f.course_id = ? AND f.tee_date = ?
                  AND f.tee_time = ? AND f.starting_hole = ? AND f.status != ?
                """,
                (
                    tenant_id, course_id, tee_date.isoformat(), tee_time,
                    starting_hole, FlightStatus.CANCELLED.value,
                ),
            ) as cur:
                row = await cur.fetchone()
        return int(row["total"]) if row else 0

    async def insert_flight(
        self, flight: Flight, players: list[PlayerInput], booking_year: int,
    ) -> Flight:
        """Allocate the next booking number and persist flight + players atomically."""
        async with self._transaction() as db:
            sequence = await self._next_booking_sequence(db, flight.tenant_id, booking_year)
            booking_number = format_booking_number(booking_year, sequence)
            await db.execute(
                """
                INSERT INTO flights (
                    id, tenant_id, course_id, booking_number, tee_date, tee_time,
                    starting_hole, holes, status, notes, confirmed_at,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    flight.id, flight.tenant_id, flight.course_id, booking_number,
                    flight.tee_date.isoformat(), flight.tee_time,
                    flight.starting_hole, flight.holes, flight.status.value,
                    flight.notes, _ts(flight.confirmed_at),
                    _ts(flight.created_at), _ts(flight.updated_at),
                ),
            )
            await db.executemany(_INSERT_PLAYER, [_player_params(flight.id, p) for p in players])
            async with db.execute(
                "SELECT * FROM flights WHERE id = ?", (flight.id,)
            ) as cur:
                rows = await cur.fetchall()
            return (await self._load_flights(db, rows))[0]

    async def _next_booking_sequence(
        self, db: aiosqlite.Connection, tenant_id: str, year: int,
    ) -> int:
        """Increment the tenant/year counter, seeding it from existing numbers."""
        prefix = f"TT-{year}-"
        await db.execute(
            """
            INSERT OR IGNORE INTO booking_sequences (tenant_id, year, last_value)
            SELECT ?, ?, COALESCE(MAX(CAST(substr(booking_number, ?) AS INTEGER)), 0)
            FROM flights WHERE tenant_id = ? AND booking_number LIKE ?
            """,
            (tenant_id, year, len(prefix) + 1, tenant_id, prefix + "%"),
        )
        await db.execute(
            """
            UPDATE booking_sequences SET last_value = last_value + 1
            WHERE tenant_id = ? AND year = ?
            """,
            (tenant_id, year),
        )
        async with db.execute(
            "SELECT last_value FROM booking_sequences WHERE tenant_id = ? AND year = ?",
            (tenant_id, year),
        ) as cur:
            row = await cur.fetchone()
        return int(row["last_value"])

    async def update_flight(
        self,
        flight_id: str,
        *,
        expected_status: FlightStatus | None = None,
        **fields: Any,
    ) -> bool:
        """Write *fields*; with *expected_status*, only while the flight still has it.

        Returns False when no row was changed.
        """
        unknown = set(fields) - _FLIGHT_FIELDS
        if unknown:
            raise ValueError(f"Unknown flight fields: {sorted(unknown)}")
        if not fields:
            return True

        values: list[Any] = []
        for value in fields.values():
            if isinstance(value, datetime):
                value = _ts(value)
            elif isinstance(value, FlightStatus):
                value = value.value
            values.append(value)
        assignments = ", ".join(f"{name} = ?" for name in fields)

        sql = f"UPDATE flights SET {assignments}, updated_at = ? WHERE id = ?"
        params: list[Any] = [*values, _ts(_now()), flight_id]
        if expected_status is not None:
            sql += " AND status = ?"
            params.append(expected_status.value)

        async with self._transaction() as db:
            cur = await db.execute(sql, params)
        return cur.rowcount == 1

    async def replace_players(self, flight_id: str, players: list[PlayerInput]) -> None:
        async with self._transaction() as db:
            await db.execute("DELETE FROM flight_players WHERE flight_id = ?", (flight_id,))
            await db.executemany(_INSERT_PLAYER, [_player_params(flight_id, p) for p in players])
            await db.execute(
                "UPDATE flights SET updated_at = ? WHERE id = ?", (_ts(_now()), flight_id)
            )

    async def check_in_flight(self, flight_id: str, at: datetime) -> bool:
        """Check in a CONFIRMED flight and every one of its players.

        Returns False, touching nothing, when the flight is no longer CONFIRMED.
        """
        stamp = _ts(at)
        async with self._transaction() as db:
            cur = await db.execute(
                """
                UPDATE flights SET status = ?, checked_in_at = ?, updated_at = ?
                WHERE id = ? AND status = ?
                """,
                (
                    FlightStatus.CHECKED_IN.value, stamp, stamp,
                    flight_id, FlightStatus.CONFIRMED.value,
                ),
            )
            if cur.rowcount != 1:
                return False
            await db.execute(
                """
                UPDATE flight_players SET checked_in = 1, checked_in_at = ?
                WHERE flight_id = ?
                """,
                (stamp, flight_id),
            )
        return True

    # ══════════════════════════════════════════════════════════════════
    #                          EVENTS
    # ══════════════════════════════════════════════════════════════════

    async def append_event(self, event: DomainEvent) -> DomainEvent:
        stored = event.model_copy(
            update={
                "id": event.id or str(uuid4()),
                "created_at": event.created_at or _now(),
            }
        )
        async with self._transaction() as db:
            await db.execute(
                """
                INSERT INTO domain_events (
                    id, tenant_id, aggregate_type, aggregate_id, event_type,
                    payload, user_id, user_email, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    stored.id, stored.tenant_id, stored.aggregate_type,
                    stored.aggregate_id, stored.event_type,
                    json.dumps(stored.payload, default=str),
                    stored.user_id, stored.user_email, _ts(stored.created_at),
                ),
            )
        return stored

    async def list_events(
        self, tenant_id: str, aggregate_type: str, aggregate_id: str,
    ) -> list[DomainEvent]:
        async with self._read() as db:
            async with db.execute(
                """
                SELECT * FROM domain_events
                WHERE tenant_id = ? AND aggregate_type = ? AND aggregate_id = ?
                ORDER BY created_at, rowid
                """,
                (tenant_id, aggregate_type, aggregate_id),
            ) as cur:
                rows = await cur.fetchall()
        return [_row_to_event(r) for r in rows]

    # ══════════════════════════════════════════════════════════════════
    #                        SLOT LOCKS
    # ══════════════════════════════════════════════════════════════════

    async def try_lock(self, key: str, ttl_seconds: float, token: str | None = None) -> bool:
        """Take *key* unless a live lock holds it. Expired holders are evicted."""
        now = time.time()
        async with self._transaction() as db:
            await db.execute(
                "DELETE FROM slot_locks WHERE key = ? AND expires_at <= ?", (key, now)
            )
            cur = await db.execute(
                "INSERT OR IGNORE INTO slot_locks (key, token, expires_at) VALUES (?, ?, ?)",
                (key, token, now + ttl_seconds),
            )
        return cur.rowcount == 1

    async def unlock(self, key: str, token: str | None = None) -> bool:
        """Delete *key*; with *token*, only the row that token created."""
        async with self._transaction() as db:
            if token is None:
                cur = await db.execute("DELETE FROM slot_locks WHERE key = ?", (key,))
            else:
                cur = await db.execute(
                    "DELETE FROM slot_locks WHERE key = ? AND token = ?", (key, token)
                )
        return cur.rowcount == 1

    async def purge_expired_locks(self) -> int:
        async with self._transaction() as db:
            cur = await db.execute(
                "DELETE FROM slot_locks WHERE expires_at <= ?", (time.time(),)
            )
        return cur.rowcount
