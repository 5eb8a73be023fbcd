# backend/sloty/services/slots/aggregator.py
"""
Availability source aggregation.

Turns a provider's weekly working hours at one location, provider
exceptions and location closures into open [start, end) intervals:

    working hours (per local day)
      ∪ provider extra_hours
      − provider time_off
      − location closures          (closures always win)

Inputs are plain row objects (ORM rows or anything with the same
attributes); the functions here never touch the database.
"""

import heapq
from datetime import date, datetime
from typing import Iterable, Iterator
from zoneinfo import ZoneInfo

from .calendar import (
    MINUTES_PER_DAY,
    Interval,
    days_touching,
    ensure_aware,
    from_db,
    local_to_instant,
    parse_local_time,
    resolve_zone,
)
from .errors import InvalidScheduleData
from .intervals import clip, coalesce, merge, subtract

EXCEPTION_TIME_OFF = "time_off"
EXCEPTION_EXTRA_HOURS = "extra_hours"
EXCEPTION_KINDS = (EXCEPTION_TIME_OFF, EXCEPTION_EXTRA_HOURS)


# ── Validation ───────────────────────────────────────────────────────────


def hours_by_weekday(working_hours: Iterable) -> dict[int, list[tuple[int, int]]]:
    """
    Validate working-hours rows and group them by weekday.

    Returns:
        {weekday: [(start_min, end_min), ...]} sorted by start.

    Raises:
        InvalidScheduleData: bad weekday, bad time, start >= end,
            or two ranges overlapping on the same weekday.
    """
    grouped: dict[int, list[tuple[int, int]]] = {}

    for row in working_hours:
        weekday = row.weekday
        if isinstance(weekday, bool) or not isinstance(weekday, int) or not 0 <= weekday <= 6:
            raise InvalidScheduleData(
                f"Working hours {getattr(row, 'id', None)}: weekday {weekday!r} not in 0..6"
            )
        start_min = parse_local_time(row.start_local_time)
        end_min = parse_local_time(row.end_local_time, allow_end_of_day=True)
        if start_min >= end_min:
            raise InvalidScheduleData(
                f"Working hours {getattr(row, 'id', None)}: "
                f"start {row.start_local_time} is not before end {row.end_local_time}"
            )
        grouped.setdefault(weekday, []).append((start_min, end_min))

    for weekday, ranges in grouped.items():
        ranges.sort()
        for (_, prev_end), (next_start, _) in zip(ranges, ranges[1:]):
            if next_start < prev_end:
                raise InvalidScheduleData(
                    f"Working hours overlap on weekday {weekday}"
                )

    return grouped


def rows_to_intervals(rows: Iterable, label: str) -> list[Interval]:
    """Validate rows with starts_at/ends_at and return them merged."""
    intervals = []
    for row in rows:
        start = from_db(row.starts_at)
        end = from_db(row.ends_at)
        if start >= end:
            raise InvalidScheduleData(
                f"{label} {getattr(row, 'id', None)}: starts_at is not before ends_at"
            )
        intervals.append(Interval(start, end))
    return merge(intervals)


def split_exceptions(exceptions: Iterable) -> tuple[list[Interval], list[Interval]]:
    """Split provider exceptions into (extra_hours, time_off) merged lists."""
    extra, off = [], []
    for row in exceptions:
        kind = row.kind or EXCEPTION_TIME_OFF
        if kind not in EXCEPTION_KINDS:
            raise InvalidScheduleData(
                f"Provider exception {getattr(row, 'id', None)}: unknown kind {kind!r}"
            )
        (extra if kind == EXCEPTION_EXTRA_HOURS else off).append(row)
    return (
        rows_to_intervals(extra, "Provider exception"),
        rows_to_intervals(off, "Provider exception"),
    )


# ── Aggregation ──────────────────────────────────────────────────────────


def _iter_working_intervals(
    days: Iterable[date],
    by_weekday: dict[int, list[tuple[int, int]]],
    zone: ZoneInfo,
) -> Iterator[Interval]:
    """Working hours of each local day as instants, in order."""
    for day in days:
        for start_min, end_min in by_weekday.get(day.weekday(), ()):
            interval = Interval(
                local_to_instant(day, start_min, zone),
                local_to_instant(day, end_min, zone),
            )
            # A range falling entirely inside a DST gap collapses to nothing
            if not interval.is_empty():
                yield interval


def iter_open_intervals(
    working_hours: Iterable,
    closures: Iterable,
    exceptions: Iterable,
    range_start: datetime,
    range_end: datetime,
    tz: ZoneInfo | str,
) -> Iterator[Interval]:
    """
    Lazily yield open intervals within [range_start, range_end).

    Output is ordered, non-overlapping and merged. Every call recomputes
    from its inputs; rows are validated up front so a malformed row fails
    the whole query before anything is yielded.
    """
    ensure_aware(range_start, "range_start")
    ensure_aware(range_end, "range_end")

    zone = resolve_zone(tz) if isinstance(tz, str) else tz
    by_weekday = hours_by_weekday(working_hours)
    closed = rows_to_intervals(closures, "Location closure")
    extra, off = split_exceptions(exceptions)

    bounds = Interval(range_start, range_end)
    if bounds.is_empty():
        return iter(())

    worked = _iter_working_intervals(days_touching(range_start, range_end, zone), by_weekday, zone)
    opened = coalesce(heapq.merge(worked, clip(extra, bounds)))
    remaining = subtract(subtract(opened, off), closed)
    return clip(remaining, bounds)


def day_bounds(day: date, tz: ZoneInfo | str) -> Interval:
    """[local midnight, next local midnight) as instants."""
    return Interval(local_to_instant(day, 0, tz), local_to_instant(day, MINUTES_PER_DAY, tz))


def day_open_intervals(
    day: date,
    working_hours: Iterable,
    closures: Iterable,
    exceptions: Iterable,
    tz: ZoneInfo | str,
) -> list[Interval]:
    """Open intervals of a single local day (the unit the Redis cache stores)."""
    bounds = day_bounds(day, tz)
    return list(iter_open_intervals(
        working_hours, closures, exceptions, bounds.start, bounds.end, tz,
    ))


def join_days(days: Iterable[list[Interval]], bounds: Interval | None = None) -> Iterator[Interval]:
    """Concatenate per-day results (in day order), merge across midnight, clip."""
    chained = coalesce(interval for day in days for interval in day)
    return chained if bounds is None else clip(chained, bounds)
