# backend/sloty/services/slots/calculator.py
"""
Slot generation.

Slices open intervals into candidate slots of the service duration:

    interval 09:00–11:10, duration 60  →  09:00–10:00, 10:00–11:00
                                          (11:00–12:00 would cross the end: dropped)

Contains:
✓ duration resolution (provider override → service default)
✓ capacity resolution (provider override → service default)
✓ back-to-back tiling, or a finer step when configured

Does NOT contain:
✗ Notice / horizon (rules.py)
✗ Existing appointments (availability.py / reservation.py)
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Iterable, Iterator

from .calendar import Interval
from .intervals import find_containing


@dataclass(frozen=True)
class Slot:
    """A derived, non-persisted bookable window."""
    start_time: datetime
    end_time: datetime
    available: bool = True

    @property
    def interval(self) -> Interval:
        return Interval(self.start_time, self.end_time)

    def mark_unavailable(self) -> "Slot":
        return replace(self, available=False)


def resolve_duration(service, provider_service=None) -> int:
    """ProviderService.duration_minutes override, else Service.default_duration_minutes."""
    if provider_service is not None and provider_service.duration_minutes:
        return provider_service.duration_minutes
    return service.default_duration_minutes or 0


def resolve_capacity(service, provider_service=None) -> int:
    """ProviderService.capacity_override, else Service.default_capacity (min 1)."""
    if provider_service is not None and provider_service.capacity_override:
        return max(1, provider_service.capacity_override)
    return max(1, service.default_capacity or 1)


def generate_slots(
    open_intervals: Iterable[Interval],
    duration_minutes: int,
    step_minutes: int | None = None,
    extent: list[Interval] | None = None,
) -> Iterator[Slot]:
    """
    Lazily tile each open interval with slots of exactly duration_minutes.

    Slots start at the interval start and advance by step_minutes
    (default: the duration, i.e. back-to-back). A slot that would extend
    past the interval end is discarded, not truncated.

    With `extent` (the merged open time the intervals belong to), slot
    starts still stay inside their own interval, but a slot may run on
    into adjacent open time, e.g. past local midnight into the next day.

    duration_minutes <= 0 yields nothing.
    """
    if duration_minutes is None or duration_minutes <= 0:
        return
    step_minutes = step_minutes or duration_minutes
    if step_minutes <= 0:
        raise ValueError(f"step_minutes must be positive, got {step_minutes}")

    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=step_minutes)

    for interval in open_intervals:
        limit = _limit(interval, extent)
        start = interval.start
        while start < interval.end and start + duration <= limit:
            yield Slot(start_time=start, end_time=start + duration)
            start += step


def is_on_grid(
    start_time: datetime,
    interval: Interval,
    duration_minutes: int,
    step_minutes: int | None = None,
    extent: list[Interval] | None = None,
) -> bool:
    """Would generate_slots over `interval` produce a slot starting at start_time?"""
    if duration_minutes is None or duration_minutes <= 0:
        return False
    step = timedelta(minutes=step_minutes or duration_minutes)
    offset = start_time - interval.start
    if offset < timedelta(0) or start_time >= interval.end:
        return False
    if start_time + timedelta(minutes=duration_minutes) > _limit(interval, extent):
        return False
    return offset % step == timedelta(0)


def _limit(interval: Interval, extent: list[Interval] | None) -> datetime:
    """End of the open time a slot starting in `interval` may use."""
    if extent:
        containing = find_containing(extent, interval)
        if containing is not None:
            return containing.end
    return interval.end
