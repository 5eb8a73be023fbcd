# backend/sloty/services/slots/intervals.py
"""
Interval algebra on sorted lists of half-open [start, end) intervals.

All operations are a single linear sweep over inputs that are already
sorted by start; `merge` is the only one that sorts.
"""

from typing import Iterable, Iterator

from .calendar import Interval


def coalesce(intervals: Iterable[Interval]) -> Iterator[Interval]:
    """
    Stream-merge intervals already sorted by start.

    Overlapping or adjacent intervals are joined; empties are dropped.
    """
    pending: Interval | None = None
    for interval in intervals:
        if interval.is_empty():
            continue
        if pending is None:
            pending = interval
        elif interval.start <= pending.end:
            if interval.end > pending.end:
                pending = Interval(pending.start, interval.end)
        else:
            yield pending
            pending = interval
    if pending is not None:
        yield pending


def merge(intervals: Iterable[Interval]) -> list[Interval]:
    """Sort, drop empties, and coalesce overlapping or adjacent intervals."""
    return list(coalesce(sorted(intervals)))


def subtract(base: Iterable[Interval], cuts: list[Interval]) -> Iterator[Interval]:
    """
    Yield base minus cuts.

    base may be any sorted, non-overlapping stream; cuts must be a merged
    list (see merge). A cut may split
    one base interval into two, trim it, or remove it entirely.
    """
    j = 0
    for interval in base:
        start, end = interval.start, interval.end

        # Cuts ending before this interval can't affect later ones either
        while j < len(cuts) and cuts[j].end <= start:
            j += 1

        k = j
        while k < len(cuts) and cuts[k].start < end:
            cut = cuts[k]
            if cut.start > start:
                yield Interval(start, cut.start)
            start = max(start, cut.end)
            if start >= end:
                break
            k += 1

        if start < end:
            yield Interval(start, end)


def clip(intervals: Iterable[Interval], bounds: Interval) -> Iterator[Interval]:
    """Yield intersections with bounds, skipping empties."""
    for interval in intervals:
        start = max(interval.start, bounds.start)
        end = min(interval.end, bounds.end)
        if start < end:
            yield Interval(start, end)


def find_containing(intervals: Iterable[Interval], candidate: Interval) -> Interval | None:
    """First interval fully containing candidate, or None."""
    for interval in intervals:
        if interval.start <= candidate.start and candidate.end <= interval.end:
            return interval
    return None
