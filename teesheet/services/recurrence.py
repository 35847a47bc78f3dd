"""
Recurring block patterns.

Pattern strings stored on blocks are parsed into one of a small set of
typed variants and matched exhaustively:

    DAILY                 every day
    WEEKLY:MON,WED        by three-letter weekday code (SUN..SAT)
    MONTHLY:1,15          by day of month

Anything else parses to :class:`UnknownPattern`, which never matches.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

DAY_CODES = ("MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN")


@dataclass(frozen=True)
class DailyPattern:
    pass


@dataclass(frozen=True)
class WeeklyPattern:
    days: frozenset[str]


@dataclass(frozen=True)
class MonthlyPattern:
    days: frozenset[int]


@dataclass(frozen=True)
class UnknownPattern:
    raw: str


RecurringPattern = DailyPattern | WeeklyPattern | MonthlyPattern | UnknownPattern


def _csv(values: str) -> list[str]:
    return [v.strip() for v in values.split(",") if v.strip()]


def parse_pattern(pattern: str | None) -> RecurringPattern:
    if not pattern:
        return UnknownPattern(pattern or "")

    kind, _, values = pattern.partition(":")
    kind = kind.strip().upper()

    if kind == "DAILY":
        return DailyPattern()
    if kind == "WEEKLY":
        return WeeklyPattern(frozenset(v.upper() for v in _csv(values)))
    if kind == "MONTHLY":
        days: set[int] = set()
        for value in _csv(values):
            try:
                days.add(int(value))
            except ValueError:
                return UnknownPattern(pattern)
        return MonthlyPattern(frozenset(days))
    return UnknownPattern(pattern)


def validate_pattern(pattern: str) -> RecurringPattern:
    """Parse *pattern* for storage, rejecting anything that could never match."""
    parsed = parse_pattern(pattern)
    match parsed:
        case DailyPattern():
            pass
        case WeeklyPattern(days=days):
            unknown = sorted(days - set(DAY_CODES))
            if not days or unknown:
                raise ValueError(f"Invalid weekday codes in pattern {pattern!r}: {unknown}")
        case MonthlyPattern(days=days):
            if not days or any(d < 1 or d > 31 for d in days):
                raise ValueError(f"Invalid days of month in pattern {pattern!r}")
        case UnknownPattern():
            raise ValueError(f"Unknown recurring pattern {pattern!r}")
    return parsed


def day_code(day: date) -> str:
    return DAY_CODES[day.weekday()]


def matches_recurring_pattern(day: date, pattern: str | RecurringPattern | None) -> bool:
    """True when a block with *pattern* applies on *day*."""
    parsed = pattern if not isinstance(pattern, (str, type(None))) else parse_pattern(pattern)
    match parsed:
        case DailyPattern():
            return True
        case WeeklyPattern(days=days):
            return day_code(day) in days
        case MonthlyPattern(days=days):
            return day.day in days
        case UnknownPattern():
            return False
    return False
