# backend/sloty/services/slots/availability.py
"""
Available slots for a (service, provider, location) over a time range.

Pipeline:
  1. catalog lookups (service, provider, location, assignment, override)
  2. open intervals (Redis per-day cache, or aggregator on a miss)
  3. slot generation (duration, step; the grid restarts each local day)
  4. booking-rule filter (notice, horizon) with the injected `now`
  5. optional booked-state marking from one batched appointment query

Read-only and idempotent. The result is a hint: only reserve_slot()
decides whether a slot can actually be taken.
"""

import logging
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from redis import Redis
from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from . import repository as repo
from .aggregator import day_bounds, day_open_intervals, join_days
from .calculator import Slot, generate_slots, resolve_capacity, resolve_duration
from .calendar import Interval, days_touching, ensure_aware, from_db, overlaps, resolve_zone
from .config import BookingConfig, get_booking_config
from .errors import InvalidScheduleData
from .redis_store import SlotsRedisStore
from .rules import ResolvedRule, filter_slots

logger = logging.getLogger(__name__)


def list_available_slots(
    db: Session,
    tenant_id: int,
    service_id: int,
    provider_id: int,
    location_id: int,
    range_start: datetime,
    range_end: datetime,
    now: datetime,
    config: BookingConfig | None = None,
    redis: Redis | None = None,
    mark_booked: bool = True,
) -> list[Slot]:
    """
    List bookable slots starting in [range_start, range_end).

    Returns an empty list for unknown/inactive service, provider or
    location, for a provider not assigned to the location, and for a
    non-positive duration.

    Raises:
        InvalidScheduleData: stored schedule rows are malformed. The whole
            query fails; a partial list is never returned.
    """
    config = config or get_booking_config()
    ensure_aware(range_start, "range_start")
    ensure_aware(range_end, "range_end")
    ensure_aware(now, "now")

    if range_end <= range_start:
        return []

    # Step 1: Catalog
    service = repo.get_service(db, tenant_id, service_id)
    provider = repo.get_provider(db, tenant_id, provider_id)
    location = repo.get_location(db, tenant_id, location_id)
    if not service or not provider or not location:
        return []
    if not repo.is_provider_assigned(db, tenant_id, provider_id, location_id):
        return []

    provider_service = repo.get_provider_service(db, tenant_id, provider_id, service_id)
    duration_min = resolve_duration(service, provider_service)
    if duration_min <= 0:
        return []

    rule = repo.get_booking_rule(db, tenant_id, service_id, config)

    # Step 2: Open intervals
    try:
        zone = resolve_zone(location.timezone)
        open_days = get_open_days(
            db, tenant_id, provider_id, location_id, zone,
            range_start, range_end, config, redis,
        )
    except InvalidScheduleData:
        logger.exception(
            f"Invalid schedule data: tenant={tenant_id} provider={provider_id} "
            f"location={location_id}"
        )
        raise

    # Step 3 + 4: Slots in range, within notice/horizon
    # The grid restarts each local day so it does not depend on the range
    step = config.step_for(duration_min)
    candidates = generate_slots(
        day_pieces(open_days), duration_min, step, extent=open_extent(open_days),
    )
    in_range = (
        slot for slot in candidates
        if range_start <= slot.start_time < range_end
    )
    slots = list(filter_slots(in_range, rule, now))

    # Step 5: Booked state
    if mark_booked and slots:
        capacity = resolve_capacity(service, provider_service)
        slots = _mark_booked(db, tenant_id, provider_id, slots, capacity, rule)

    return slots


# ── Open intervals (Level 1 with cache) ──────────────────────────────────


def source_window(range_start: datetime, range_end: datetime, zone: ZoneInfo) -> Interval:
    """
    Local days touching the range, widened by one day on each side.

    A slot may run past local midnight into the next day's open time, so
    the neighbouring days must be known. Listing and reservation use the
    same window.
    """
    days = list(days_touching(range_start, range_end, zone))
    if not days:
        days = [range_start.astimezone(zone).date()]
    first = days[0] - timedelta(days=1)
    last = days[-1] + timedelta(days=1)
    return Interval(day_bounds(first, zone).start, day_bounds(last, zone).end)


def get_open_days(
    db: Session,
    tenant_id: int,
    provider_id: int,
    location_id: int,
    zone: ZoneInfo,
    range_start: datetime,
    range_end: datetime,
    config: BookingConfig,
    redis: Redis | None = None,
) -> dict[date, list[Interval]]:
    """
    Open intervals of each local day in source_window(range), in day order.

    Each day is computed on its own, so the result for a day never depends
    on which range asked for it. Uses Redis when available.
    """
    window = source_window(range_start, range_end, zone)
    days = list(days_touching(window.start, window.end, zone))

    if redis is None:
        sources = _load_sources(db, tenant_id, provider_id, location_id, window)
        return {dt: day_open_intervals(dt, *sources, zone) for dt in days}

    store = SlotsRedisStore(redis, config)

    try:
        cached = store.mget_days(tenant_id, location_id, provider_id, days)
    except RedisError:
        logger.warning("Slots cache read failed, computing without cache", exc_info=True)
        cached = {}

    missing = [dt for dt in days if cached.get(dt) is None]
    if missing:
        sources = _load_sources(db, tenant_id, provider_id, location_id, window)
        computed: dict[date, list[Interval]] = {
            dt: day_open_intervals(dt, *sources, zone) for dt in missing
        }
        try:
            store.store_multiple_days(tenant_id, location_id, provider_id, computed)
        except RedisError:
            logger.warning("Slots cache write failed", exc_info=True)
        cached = {**cached, **computed}

    return {dt: cached[dt] for dt in days}


def day_pieces(open_days: dict[date, list[Interval]]) -> list[Interval]:
    """
    Per-day open intervals in order, not merged across midnight.

    The slot grid restarts at the start of each piece.
    """
    return [interval for day in open_days.values() for interval in day]


def open_extent(open_days: dict[date, list[Interval]]) -> list[Interval]:
    """Per-day open intervals merged across midnight."""
    return list(join_days(open_days.values()))


def _load_sources(
    db: Session,
    tenant_id: int,
    provider_id: int,
    location_id: int,
    window: Interval,
) -> tuple[list, list, list]:
    """Working hours, closures and exceptions, fetched once per query."""
    working_hours = repo.get_working_hours(db, tenant_id, provider_id, location_id)
    closures = repo.get_closures(db, tenant_id, location_id, window.start, window.end)
    exceptions = repo.get_provider_exceptions(
        db, tenant_id, provider_id, location_id, window.start, window.end
    )
    return working_hours, closures, exceptions


# ── Booked state ─────────────────────────────────────────────────────────


def _mark_booked(
    db: Session,
    tenant_id: int,
    provider_id: int,
    slots: list[Slot],
    capacity: int,
    rule: ResolvedRule,
) -> list[Slot]:
    """Flag slots whose capacity is used up by active appointments."""
    if capacity == 1 and rule.allow_double_book:
        return slots

    appointments = repo.get_overlapping_appointments(
        db, tenant_id, provider_id, slots[0].start_time, slots[-1].end_time,
    )
    if not appointments:
        return slots

    booked = [Interval(from_db(a.start_at), from_db(a.end_at)) for a in appointments]

    result = []
    for slot in slots:
        used = sum(1 for b in booked if overlaps(b, slot.interval))
        result.append(slot.mark_unavailable() if used >= capacity else slot)
    return result
