"""Weekly free-time analysis over calendar events.

Busy time is a straight sum of each event clipped to the working window.
Overlapping events are not merged, so an overlap counts twice; callers rely
on the numbers this produces.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import FrozenSet, Iterable, List, Sequence, Tuple

WEEKDAY_LABELS: Tuple[str, ...] = ("M", "T", "W", "Th", "F")
DEFAULT_WORK_START = 9
DEFAULT_WORK_END = 17


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    title: str
    start: datetime
    end: datetime
    description: str = ""
    location: str = ""
    attendees: FrozenSet[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class DailyAvailability:
    date: date
    free_hours: float
    start_time: datetime
    end_time: datetime


def _as_datetime(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def next_monday(reference: date | datetime) -> datetime:
    """Midnight of the first Monday strictly after ``reference``."""

    start = _as_datetime(reference)
    # A Monday reference resolves to the following week, never the same day.
    days_ahead = 7 - start.weekday()
    return datetime.combine(start.date() + timedelta(days=days_ahead), time.min)


def week_range(reference: date | datetime) -> Tuple[date, date]:
    """Monday and Friday dates of the working week after ``reference``."""

    monday = next_monday(reference).date()
    return monday, monday + timedelta(days=4)


def _round_half_up(value: float, digits: int = 1) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def _validate_hours(work_start: int, work_end: int) -> None:
    if not (0 <= work_start < work_end <= 24):
        raise ValueError(
            f"Working hours must satisfy 0 <= start < end <= 24 (got {work_start}-{work_end})"
        )


def _window(day: date, hour: int) -> datetime:
    return datetime.combine(day, time.min) + timedelta(hours=hour)


def events_on(events: Iterable[CalendarEvent], day: date) -> List[CalendarEvent]:
    """Events whose start falls on ``day``, ordered by start."""

    selected = [event for event in events if event.start.date() == day]
    return sorted(selected, key=lambda event: event.start)


def daily_free_time(
    events: Sequence[CalendarEvent],
    day: date,
    work_start: int = DEFAULT_WORK_START,
    work_end: int = DEFAULT_WORK_END,
) -> DailyAvailability:
    _validate_hours(work_start, work_end)
    start_time = _window(day, work_start)
    end_time = _window(day, work_end)

    busy_minutes = 0.0
    for event in events:
        clipped_start = max(event.start, start_time)
        clipped_end = min(event.end, end_time)
        if clipped_end > clipped_start:
            busy_minutes += (clipped_end - clipped_start).total_seconds() / 60

    total_minutes = (work_end - work_start) * 60
    free_hours = max(0.0, _round_half_up((total_minutes - busy_minutes) / 60))
    return DailyAvailability(date=day, free_hours=free_hours, start_time=start_time, end_time=end_time)


def weekly_free_time(
    reference: date | datetime,
    events: Iterable[CalendarEvent],
    work_start: int = DEFAULT_WORK_START,
    work_end: int = DEFAULT_WORK_END,
) -> List[DailyAvailability]:
    """Availability for Monday to Friday of the week after ``reference``."""

    _validate_hours(work_start, work_end)
    pool = list(events)
    monday = next_monday(reference).date()
    analysis = []
    for offset in range(len(WEEKDAY_LABELS)):
        day = monday + timedelta(days=offset)
        analysis.append(daily_free_time(events_on(pool, day), day, work_start, work_end))
    return analysis


def _format_hours(hours: float) -> str:
    if float(hours).is_integer():
        return str(int(hours))
    return str(hours)


def format_weekly_free_time(analysis: Sequence[DailyAvailability]) -> str:
    return "\n".join(
        f"{label} - {_format_hours(day.free_hours)} hours"
        for label, day in zip(WEEKDAY_LABELS, analysis)
    )


__all__ = [
    "CalendarEvent",
    "DEFAULT_WORK_END",
    "DEFAULT_WORK_START",
    "DailyAvailability",
    "WEEKDAY_LABELS",
    "daily_free_time",
    "events_on",
    "format_weekly_free_time",
    "next_monday",
    "week_range",
    "weekly_free_time",
]
