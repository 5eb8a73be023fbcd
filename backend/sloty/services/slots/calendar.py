# backend/sloty/services/slots/calendar.py
"""
Calendar arithmetic.

Everything that knows about time zones lives here. The rest of the engine
works with timezone-aware UTC instants and half-open [start, end) intervals.

DST policy for wall-clock → instant:
- a local time skipped by a spring-forward transition maps to the first
  valid instant at or after it (the transition instant itself);
- a local time repeated by a fall-back transition maps to the earlier
  of its two instants.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from typing import Iterator
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .config import time_str_to_minutes
from .errors import InvalidScheduleData

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True, order=True)
class Interval:
    """Half-open [start, end) interval of aware instants."""
    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def is_empty(self) -> bool:
        return self.end <= self.start


def overlaps(a: Interval, b: Interval) -> bool:
    """Half-open overlap: touching intervals do not overlap."""
    return a.start < b.end and b.start < a.end


@lru_cache(maxsize=256)
def resolve_zone(tz_name: str) -> ZoneInfo:
    """Get ZoneInfo for an IANA name; unknown names are bad schedule data."""
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidScheduleData(f"Unknown timezone: {tz_name!r}") from e


def _zone(tz: ZoneInfo | str) -> ZoneInfo:
    return tz if isinstance(tz, ZoneInfo) else resolve_zone(tz)


def ensure_aware(value: datetime, name: str = "datetime") -> datetime:
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{name} must be timezone-aware, got naive {value!r}")
    return value


def parse_local_time(value: str | time, allow_end_of_day: bool = False) -> int:
    """
    Parse a wall-clock time into minutes since midnight.

    "24:00" is accepted only as an end-of-day marker (allow_end_of_day).
    """
    if isinstance(value, time):
        return value.hour * 60 + value.minute

    try:
        hours_str, minutes_str = value.strip().split(":")
        if len(minutes_str) != 2:
            raise ValueError(value)
        minutes = time_str_to_minutes(value.strip())
        hours, mins = int(hours_str), int(minutes_str)
    except (AttributeError, ValueError) as e:
        raise InvalidScheduleData(f"Invalid local time: {value!r}") from e

    if not 0 <= mins < 60:
        raise InvalidScheduleData(f"Invalid local time: {value!r}")
    if minutes == MINUTES_PER_DAY and allow_end_of_day:
        return minutes
    if not 0 <= hours < 24:
        raise InvalidScheduleData(f"Invalid local time: {value!r}")
    return minutes


def local_to_instant(day: date, local_time: str | time | int, tz: ZoneInfo | str) -> datetime:
    """
    Convert (date, wall-clock time, zone) to an aware UTC instant.

    local_time may be "HH:MM", a time object, or minutes since midnight
    (1440 = midnight at the end of `day`).
    """
    zone = _zone(tz)
    if isinstance(local_time, int):
        minutes = local_time
    else:
        minutes = parse_local_time(local_time, allow_end_of_day=True)

    if minutes == MINUTES_PER_DAY:
        day, minutes = day + timedelta(days=1), 0

    naive = datetime.combine(day, time(minutes // 60, minutes % 60))
    first = naive.replace(tzinfo=zone, fold=0)
    second = naive.replace(tzinfo=zone, fold=1)

    if first.utcoffset() == second.utcoffset():
        return first.astimezone(timezone.utc)

    round_trip = first.astimezone(timezone.utc).astimezone(zone).replace(tzinfo=None)
    if round_trip == naive:
        # Ambiguous: take the earlier instant
        return min(first.astimezone(timezone.utc), second.astimezone(timezone.utc))

    return _first_valid_instant_after(naive, zone, first, second)


def _first_valid_instant_after(
    naive: datetime,
    zone: ZoneInfo,
    first: datetime,
    second: datetime,
) -> datetime:
    """
    Transition instant for a local time inside a DST gap.

    Wall-clock time is monotonic across the gap, so binary search (in whole
    seconds) for the first instant whose local reading is >= naive.
    """
    # Same-zone datetimes compare by wall clock (fold ignored), so compare in UTC
    a, b = first.astimezone(timezone.utc), second.astimezone(timezone.utc)
    lo, hi = min(a, b), max(a, b)
    lo_ts, hi_ts = int(lo.timestamp()), int(hi.timestamp())

    while lo_ts < hi_ts:
        mid = (lo_ts + hi_ts) // 2
        local = datetime.fromtimestamp(mid, tz=timezone.utc).astimezone(zone)
        if local.replace(tzinfo=None) >= naive:
            hi_ts = mid
        else:
            lo_ts = mid + 1

    return datetime.fromtimestamp(lo_ts, tz=timezone.utc)


def instant_to_local(instant: datetime, tz: ZoneInfo | str) -> datetime:
    """Aware instant → aware local datetime in tz."""
    return ensure_aware(instant, "instant").astimezone(_zone(tz))


def weekday_of(value: date | datetime, tz: ZoneInfo | str) -> int:
    """
    Day of week (0 = Monday .. 6 = Sunday).

    Instants are first converted to the local calendar day in tz;
    plain dates are already local.
    """
    if isinstance(value, datetime):
        return instant_to_local(value, tz).weekday()
    return value.weekday()


def days_touching(range_start: datetime, range_end: datetime, tz: ZoneInfo | str) -> Iterator[date]:
    """Local calendar days intersecting [range_start, range_end)."""
    if range_end <= range_start:
        return
    zone = _zone(tz)
    current = instant_to_local(range_start, zone).date()
    last = instant_to_local(range_end - timedelta(microseconds=1), zone).date()
    while current <= last:
        yield current
        current += timedelta(days=1)


# ── Storage format ───────────────────────────────────────────────────────


def to_db(instant: datetime) -> str:
    """Aware instant → ISO-8601 UTC text ("2024-01-15T14:00:00+00:00")."""
    ensure_aware(instant, "instant")
    return instant.astimezone(timezone.utc).isoformat(timespec="seconds")


def from_db(value: str | datetime) -> datetime:
    """Stored text → aware UTC instant. Naive values are taken as UTC."""
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
