"""Tests for the per-day open-interval cache and its invalidation."""

from datetime import date
from unittest.mock import MagicMock

from redis.exceptions import ConnectionError as RedisConnectionError

from sloty.services.slots import (
    BookingConfig,
    SlotsRedisStore,
    invalidate_location_cache,
    invalidate_provider_cache,
    list_available_slots,
)
from sloty.services.slots.calendar import Interval, to_db
from sloty.services.slots.invalidator import get_affected_dates_from_range
from sloty.services.slots.redis_store import EMPTY_SENTINEL

from .conftest import MONDAY, ny

WORKDAY = Interval(ny(2024, 1, 15, 9), ny(2024, 1, 15, 17))
MEMBER = f"{to_db(WORKDAY.start)}|{to_db(WORKDAY.end)}"


def make_store(redis=None):
    return SlotsRedisStore(redis or MagicMock(), BookingConfig(cache_ttl_seconds=600))


class TestWrite:
    def test_store_day_intervals(self):
        store = make_store()
        pipe = store.redis.pipeline.return_value

        store.store_day_intervals(1, 2, 3, MONDAY, [WORKDAY])

        key = "slots:open:1:2:3:2024-01-15"
        pipe.delete.assert_called_once_with(key)
        pipe.zadd.assert_called_once_with(key, {MEMBER: WORKDAY.start.timestamp()})
        pipe.expire.assert_called_once_with(key, 600)
        pipe.execute.assert_called_once()

    def test_empty_day_gets_sentinel(self):
        store = make_store()
        pipe = store.redis.pipeline.return_value

        store.store_day_intervals(1, 2, 3, MONDAY, [])

        pipe.zadd.assert_called_once_with("slots:open:1:2:3:2024-01-15", {EMPTY_SENTINEL: 0})

    def test_store_multiple_days_uses_one_pipeline(self):
        store = make_store()
        store.store_multiple_days(1, 2, 3, {MONDAY: [WORKDAY], date(2024, 1, 16): []})
        assert store.redis.pipeline.call_count == 1
        assert store.redis.pipeline.return_value.execute.call_count == 1

    def test_store_nothing(self):
        store = make_store()
        store.store_multiple_days(1, 2, 3, {})
        store.redis.pipeline.assert_not_called()


class TestRead:
    def test_miss(self):
        store = make_store()
        store.redis.exists.return_value = 0
        assert store.get_day_intervals(1, 2, 3, MONDAY) is None

    def test_hit(self):
        store = make_store()
        store.redis.exists.return_value = 1
        store.redis.zrange.return_value = [MEMBER.encode()]
        assert store.get_day_intervals(1, 2, 3, MONDAY) == [WORKDAY]

    def test_sentinel_means_closed_day(self):
        store = make_store()
        store.redis.exists.return_value = 1
        store.redis.zrange.return_value = [EMPTY_SENTINEL]
        assert store.get_day_intervals(1, 2, 3, MONDAY) == []

    def test_mget_days(self):
        store = make_store()
        tuesday = date(2024, 1, 16)
        store.redis.pipeline.return_value.execute.return_value = [1, [MEMBER], 0, []]

        assert store.mget_days(1, 2, 3, [MONDAY, tuesday]) == {MONDAY: [WORKDAY], tuesday: None}


class TestDelete:
    def test_delete_all_days_of_provider(self):
        store = make_store()
        store.redis.scan_iter.return_value = iter(["slots:open:1:2:3:2024-01-15"])
        store.redis.delete.return_value = 1

        assert store.delete_days(1, 2, 3) == 1
        store.redis.scan_iter.assert_called_once_with(match="slots:open:1:2:3:*")

    def test_delete_specific_dates(self):
        store = make_store()
        store.redis.delete.return_value = 1

        assert store.delete_days(1, 2, 3, [MONDAY]) == 1
        store.redis.delete.assert_called_once_with("slots:open:1:2:3:2024-01-15")

    def test_location_wide_dates_use_pattern(self):
        store = make_store()
        store.redis.scan_iter.return_value = iter([])

        assert store.delete_days(1, 2, None, [MONDAY]) == 0
        store.redis.scan_iter.assert_called_once_with(match="slots:open:1:2:*:2024-01-15")


class TestInvalidator:
    def test_provider_any_location(self):
        redis = MagicMock()
        redis.scan_iter.return_value = iter([])
        invalidate_provider_cache(redis, 1, 3)
        redis.scan_iter.assert_called_once_with(match="slots:open:1:*:3:*")

    def test_location(self):
        redis = MagicMock()
        redis.scan_iter.return_value = iter([])
        invalidate_location_cache(redis, 1, 2)
        redis.scan_iter.assert_called_once_with(match="slots:open:1:2:*:*")

    def test_redis_outage_does_not_raise(self):
        redis = MagicMock()
        redis.scan_iter.side_effect = RedisConnectionError("down")
        assert invalidate_location_cache(redis, 1, 2) == 0

    def test_affected_dates_use_location_timezone(self):
        # Ends exactly at local midnight: the 16th is untouched
        dates = get_affected_dates_from_range(ny(2024, 1, 15, 22), ny(2024, 1, 16), "America/New_York")
        assert dates == [MONDAY]


class TestCachedAvailability:
    def test_miss_computes_and_stores(self, db, seed):
        redis = MagicMock()
        pipe = redis.pipeline.return_value
        # Window is Sun..Tue: three misses, then the write
        pipe.execute.side_effect = [[0, [], 0, [], 0, []], []]

        slots = list_available_slots(db, 1, 1, 1, 1, ny(2024, 1, 15), ny(2024, 1, 16), ny(2024, 1, 1), redis=redis)

        assert len(slots) == 16
        stored_keys = [c.args[0] for c in pipe.zadd.call_args_list]
        assert stored_keys == [
            "slots:open:1:1:1:2024-01-14",
            "slots:open:1:1:1:2024-01-15",
            "slots:open:1:1:1:2024-01-16",
        ]

    def test_hit_skips_schedule_queries(self, db, seed):
        redis = MagicMock()
        tuesday = Interval(ny(2024, 1, 16, 9), ny(2024, 1, 16, 17))
        pipe = redis.pipeline.return_value
        pipe.execute.return_value = [
            1, [EMPTY_SENTINEL],
            1, [MEMBER],
            1, [f"{to_db(tuesday.start)}|{to_db(tuesday.end)}"],
        ]

        slots = list_available_slots(db, 1, 1, 1, 1, ny(2024, 1, 15), ny(2024, 1, 16), ny(2024, 1, 1), redis=redis)

        assert len(slots) == 16
        pipe.zadd.assert_not_called()

    def test_redis_failure_falls_back_to_database(self, db, seed):
        redis = MagicMock()
        redis.pipeline.return_value.execute.side_effect = RedisConnectionError("down")

        slots = list_available_slots(db, 1, 1, 1, 1, ny(2024, 1, 15), ny(2024, 1, 16), ny(2024, 1, 1), redis=redis)

        assert len(slots) == 16
