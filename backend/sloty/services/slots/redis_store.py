# backend/sloty/services/slots/redis_store.py
"""
Redis storage for per-day open intervals using Sorted Sets.

Key format: slots:open:{tenant_id}:{location_id}:{provider_id}:{date}
Value: Sorted Set where member = "{start_iso}|{end_iso}", score = start unix ts.
Sentinel: "__empty__" with score=0 marks "calculated, provider not open that day".

Only data-derived intervals (working hours, exceptions, closures) are cached.
Notice/horizon filtering and appointment checks always run after the cache,
so nothing "now"-dependent is ever stored.
"""

from datetime import date
from redis import Redis

from .calendar import Interval, from_db, to_db
from .config import BookingConfig, get_booking_config


EMPTY_SENTINEL = "__empty__"


def _decode(member) -> str:
    return member.decode() if isinstance(member, bytes) else member


class SlotsRedisStore:
    """Redis storage wrapper using Sorted Sets for open-interval data."""

    KEY_PREFIX = "slots:open"

    def __init__(self, redis: Redis, config: BookingConfig | None = None):
        self.redis = redis
        self.config = config or get_booking_config()

    def _key(self, tenant_id: int, location_id: int, provider_id: int, dt: date) -> str:
        return f"{self.KEY_PREFIX}:{tenant_id}:{location_id}:{provider_id}:{dt.isoformat()}"

    def _add_day(self, pipe, key: str, intervals: list[Interval]) -> None:
        pipe.delete(key)
        if intervals:
            mapping = {
                f"{to_db(i.start)}|{to_db(i.end)}": i.start.timestamp()
                for i in intervals
            }
            pipe.zadd(key, mapping)
        else:
            # Empty day: sentinel so EXISTS returns True
            pipe.zadd(key, {EMPTY_SENTINEL: 0})
        pipe.expire(key, self.config.cache_ttl_seconds)

    @staticmethod
    def _parse(members) -> list[Interval]:
        intervals = []
        for raw in members:
            member = _decode(raw)
            if member == EMPTY_SENTINEL:
                continue
            start, end = member.split("|")
            intervals.append(Interval(from_db(start), from_db(end)))
        return intervals

    # ── Write ────────────────────────────────────────────────────────────

    def store_day_intervals(
        self,
        tenant_id: int,
        location_id: int,
        provider_id: int,
        dt: date,
        intervals: list[Interval],
    ) -> None:
        """Store computed open intervals for one local day (empty → sentinel)."""
        pipe = self.redis.pipeline()
        self._add_day(pipe, self._key(tenant_id, location_id, provider_id, dt), intervals)
        pipe.execute()

    def store_multiple_days(
        self,
        tenant_id: int,
        location_id: int,
        provider_id: int,
        days: dict[date, list[Interval]],
    ) -> None:
        """Batch store several days via one pipeline."""
        if not days:
            return

        pipe = self.redis.pipeline()
        for dt, intervals in days.items():
            self._add_day(pipe, self._key(tenant_id, location_id, provider_id, dt), intervals)
        pipe.execute()

    # ── Read ─────────────────────────────────────────────────────────────

    def get_day_intervals(
        self,
        tenant_id: int,
        location_id: int,
        provider_id: int,
        dt: date,
    ) -> list[Interval] | None:
        """
        Get cached open intervals for a day.

        Returns:
            Sorted list of intervals, or None on cache miss.
        """
        key = self._key(tenant_id, location_id, provider_id, dt)
        if not self.redis.exists(key):
            return None
        return self._parse(self.redis.zrange(key, 0, -1))

    def mget_days(
        self,
        tenant_id: int,
        location_id: int,
        provider_id: int,
        dates: list[date],
    ) -> dict[date, list[Interval] | None]:
        """
        Batch get cached intervals for multiple dates.

        Returns:
            Dict mapping date → intervals (or None on cache miss).
        """
        if not dates:
            return {}

        keys = [self._key(tenant_id, location_id, provider_id, dt) for dt in dates]

        pipe = self.redis.pipeline()
        for key in keys:
            pipe.exists(key)
            pipe.zrange(key, 0, -1)
        raw = pipe.execute()

        result = {}
        for i, dt in enumerate(dates):
            exists, members = raw[2 * i], raw[2 * i + 1]
            result[dt] = self._parse(members) if exists else None
        return result

    # ── Delete ───────────────────────────────────────────────────────────

    def delete_matching(self, pattern: str) -> int:
        """Delete every key matching a glob pattern. Returns deleted count."""
        keys = list(self.redis.scan_iter(match=pattern))
        if not keys:
            return 0
        return self.redis.delete(*keys)

    def delete_days(
        self,
        tenant_id: int,
        location_id: int | None = None,
        provider_id: int | None = None,
        dates: list[date] | None = None,
    ) -> int:
        """
        Delete cached days.

        None for location_id / provider_id / dates means "all".
        """
        location_part = "*" if location_id is None else str(location_id)
        provider_part = "*" if provider_id is None else str(provider_id)
        prefix = f"{self.KEY_PREFIX}:{tenant_id}:{location_part}:{provider_part}"

        if not dates:
            return self.delete_matching(f"{prefix}:*")

        deleted = 0
        for dt in dates:
            key = f"{prefix}:{dt.isoformat()}"
            if "*" in key:
                deleted += self.delete_matching(key)
            else:
                deleted += self.redis.delete(key)
        return deleted
