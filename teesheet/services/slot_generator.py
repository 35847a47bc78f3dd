"""
Tee-time slot generation.

Turns a first/last tee time plus either a flat interval or a table of
day-type intervals into the ordered list of bookable times for one day.
Everything here is a pure function of its inputs.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from datetime import date

from teesheet.models import DayType, Interval

# Step used when an interval table has no entry for the day type.
DEFAULT_INTERVAL_MINUTES = 8


@dataclass(frozen=True)
class GeneratedSlot:
    time: str
    is_prime_time: bool = False


def to_minutes(time_of_day: str) -> int:
    """"07:30" -> 450"""
    hours, _, minutes = time_of_day.partition(":")
    return int(hours) * 60 + int(minutes or 0)


def format_minutes(minutes: int) -> str:
    """450 -> "07:30" """
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def day_type_for(day: date) -> DayType:
    """Saturday and Sunday are weekend days; everything else is a weekday.

    HOLIDAY is never returned: there is no holiday calendar.
    """
    return DayType.WEEKEND if day.weekday() >= 5 else DayType.WEEKDAY


def find_interval_for_time(
    intervals: Sequence[Interval],
    time_of_day: str,
    day_type: DayType,
) -> Interval | None:
    """Return the interval whose window contains *time_of_day*.

    Falls back to the first interval of *day_type* when no window matches,
    and to ``None`` when the table has nothing for that day type.
    """
    minutes = to_minutes(time_of_day)
    fallback: Interval | None = None
    for interval in intervals:
        if interval.day_type != day_type:
            continue
        if fallback is None:
            fallback = interval
        if to_minutes(interval.time_start) <= minutes < to_minutes(interval.time_end):
            return interval
    return fallback


def iter_slots(
    first_tee_time: str,
    last_tee_time: str,
    *,
    interval: int | None = None,
    intervals: Sequence[Interval] | None = None,
    on_date: date | None = None,
) -> Iterator[GeneratedSlot]:
    """Yield slots from *first_tee_time* to *last_tee_time* inclusive.

    With *intervals* the step at each time comes from the matching table
    entry for the day type of *on_date*; otherwise every step is *interval*
    minutes and no slot is prime time.
    """
    current = to_minutes(first_tee_time)
    end = to_minutes(last_tee_time)

    if intervals:
        if on_date is None:
            raise ValueError("on_date is required when generating from an interval table")
        day_type = day_type_for(on_date)
    elif interval is None or interval <= 0:
        raise ValueError(f"Tee interval must be a positive number of minutes, got {interval!r}")

    while current <= end:
        time_of_day = format_minutes(current)
        if intervals:
            match = find_interval_for_time(intervals, time_of_day, day_type)
            step = match.interval_min if match and match.interval_min > 0 else DEFAULT_INTERVAL_MINUTES
            yield GeneratedSlot(time_of_day, bool(match and match.is_prime_time))
        else:
            step = interval  # type: ignore[assignment]
            yield GeneratedSlot(time_of_day, False)
        current += step


def generate_slots(
    first_tee_time: str,
    last_tee_time: str,
    *,
    interval: int | None = None,
    intervals: Sequence[Interval] | None = None,
    on_date: date | None = None,
) -> list[GeneratedSlot]:
    """List form of :func:`iter_slots`."""
    return list(
        iter_slots(
            first_tee_time,
            last_tee_time,
            interval=interval,
            intervals=intervals,
            on_date=on_date,
        )
    )
