# backend/sloty/services/slots/invalidator.py
"""
Cache invalidation for per-day open intervals.

Triggers:
✓ Working hours changed → all dates of that provider at that location
✓ Location closure created/deleted → affected dates of every provider at the location
✓ Provider exception created/deleted → affected dates of that provider

Does NOT trigger:
✗ Appointment created/cancelled (never cached)
✗ Booking rule changed (applied after the cache)
"""

import logging
from datetime import date, datetime

from redis import Redis
from redis.exceptions import RedisError

from .calendar import days_touching
from .redis_store import SlotsRedisStore

logger = logging.getLogger(__name__)


def invalidate_provider_cache(
    redis: Redis,
    tenant_id: int,
    provider_id: int,
    location_id: int | None = None,
    dates: list[date] | None = None,
) -> int:
    """
    Invalidate cached days for a provider.

    location_id=None covers every location (exceptions without a location).
    """
    store = SlotsRedisStore(redis)
    return _safe_delete(store, tenant_id, location_id, provider_id, dates)


def invalidate_location_cache(
    redis: Redis,
    tenant_id: int,
    location_id: int,
    dates: list[date] | None = None,
) -> int:
    """Invalidate cached days of every provider at a location."""
    store = SlotsRedisStore(redis)
    return _safe_delete(store, tenant_id, location_id, None, dates)


def _safe_delete(store, tenant_id, location_id, provider_id, dates) -> int:
    # A stale cache is worse than a slow one, but a Redis outage must not
    # break schedule edits: log loudly and let the TTL clean up.
    try:
        return store.delete_days(tenant_id, location_id, provider_id, dates)
    except RedisError:
        logger.exception(
            f"Slots cache invalidation failed: tenant={tenant_id} "
            f"location={location_id} provider={provider_id}"
        )
        return 0


def get_affected_dates_from_range(
    starts_at: datetime,
    ends_at: datetime,
    tz: str,
) -> list[date]:
    """Local dates touched by [starts_at, ends_at) in the location timezone."""
    return list(days_touching(starts_at, ends_at, tz))
