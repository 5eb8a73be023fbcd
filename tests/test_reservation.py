"""Tests for reserve_slot: conflicts, capacity, policy window, locking."""

import threading
from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from sloty.database import build_engine
from sloty.models import Appointments, LocationClosures, ProviderServices
from sloty.services.slots import (
    CapacityExceeded,
    NotFound,
    OutOfPolicyWindow,
    ReservationTimeout,
    SlotConflict,
    list_available_slots,
    reserve_slot,
)
from sloty.services.slots.calendar import from_db, to_db
from sloty.services.slots.repository import begin_write
from sloty.services.slots.reservation import _is_lock_timeout

from .conftest import UTC, add_round_the_clock_provider, add_rule, add_service, ny

NOW = datetime(2024, 1, 1, tzinfo=UTC)


def reserve(db, start, service_id=1, provider_id=1, location_id=1, now=NOW, customer_ref="customer-1", **kwargs):
    return reserve_slot(db, 1, service_id, provider_id, location_id, start, customer_ref, now, **kwargs)


def count_appointments(db) -> int:
    return db.query(Appointments).count()


def test_reserve_confirmed(db, seed):
    appointment = reserve(db, ny(2024, 1, 15, 10))

    assert appointment.id is not None
    assert appointment.status == "confirmed"
    assert from_db(appointment.start_at) == ny(2024, 1, 15, 10)
    assert from_db(appointment.end_at) == ny(2024, 1, 15, 10, 30)
    assert appointment.start_at == "2024-01-15T15:00:00+00:00"


def test_reserve_pending_when_confirmation_required(db, seed):
    assert reserve(db, ny(2024, 1, 15, 10), require_confirmation=True).status == "pending"


def test_price_comes_from_provider_service(db, seed):
    db.add(ProviderServices(tenant_id=1, provider_id=1, service_id=1, price_cents=4500))
    db.commit()
    assert reserve(db, ny(2024, 1, 15, 10)).price_cents == 4500


def test_reserved_slot_disappears_from_listing(db, seed):
    reserve(db, ny(2024, 1, 15, 10))
    slots = list_available_slots(db, 1, 1, 1, 1, ny(2024, 1, 15), ny(2024, 1, 16), NOW)
    assert [s.start_time for s in slots if not s.available] == [ny(2024, 1, 15, 10)]


def test_same_slot_twice_conflicts(db, seed):
    reserve(db, ny(2024, 1, 15, 10))

    with pytest.raises(SlotConflict) as exc_info:
        reserve(db, ny(2024, 1, 15, 10), customer_ref="customer-2")

    assert exc_info.value.http_status == 409
    assert count_appointments(db) == 1


def test_overlap_with_longer_service_conflicts(db, seed):
    add_service(db, 2, duration=60)
    reserve(db, ny(2024, 1, 15, 10, 30))

    with pytest.raises(SlotConflict):
        reserve(db, ny(2024, 1, 15, 10), service_id=2)


def test_adjacent_slots_do_not_conflict(db, seed):
    reserve(db, ny(2024, 1, 15, 10))
    reserve(db, ny(2024, 1, 15, 10, 30))
    assert count_appointments(db) == 2


def test_other_provider_is_independent(db, seed):
    reserve(db, ny(2024, 1, 15, 10))
    reserve(db, ny(2024, 1, 15, 10), provider_id=2)
    assert count_appointments(db) == 2


def test_canceled_appointment_frees_slot(db, seed):
    first = reserve(db, ny(2024, 1, 15, 10))
    first.status = "canceled"
    db.commit()

    assert reserve(db, ny(2024, 1, 15, 10)).status == "confirmed"


def test_double_booking_allowed_by_rule(db, seed):
    add_rule(db, allow_double_book=1)
    reserve(db, ny(2024, 1, 15, 10))
    reserve(db, ny(2024, 1, 15, 10))
    assert count_appointments(db) == 2


def test_group_capacity(db, seed):
    add_service(db, 2, duration=30, capacity=2)
    reserve(db, ny(2024, 1, 15, 10), service_id=2)
    reserve(db, ny(2024, 1, 15, 10), service_id=2)

    with pytest.raises(CapacityExceeded) as exc_info:
        reserve(db, ny(2024, 1, 15, 10), service_id=2)

    assert exc_info.value.details["capacity"] == 2
    assert count_appointments(db) == 2


def test_shared_resource_conflicts_across_providers(db, seed):
    reserve(db, ny(2024, 1, 15, 10), resource_id=7)

    with pytest.raises(SlotConflict):
        reserve(db, ny(2024, 1, 15, 10), provider_id=2, resource_id=7)


@pytest.mark.parametrize(
    "start",
    [
        ny(2024, 1, 15, 10, 10),  # off the 30-minute grid
        ny(2024, 1, 15, 16, 45),  # would end after closing
        ny(2024, 1, 15, 7),  # before opening
        ny(2024, 1, 13, 10),  # Saturday
    ],
)
def test_slot_not_offered(db, seed, start):
    with pytest.raises(SlotConflict):
        reserve(db, start)
    assert count_appointments(db) == 0


def test_slots_from_a_multi_day_listing_can_be_reserved(db, seed):
    add_round_the_clock_provider(db)
    add_service(db, 2, duration=50)
    listed = list_available_slots(db, 1, 2, 3, 1, ny(2024, 1, 15), ny(2024, 1, 18), NOW)
    wednesday = [s for s in listed if s.start_time >= ny(2024, 1, 17)]

    for slot in (wednesday[0], wednesday[1], wednesday[-1]):
        appointment = reserve(db, slot.start_time, service_id=2, provider_id=3)
        assert from_db(appointment.end_at) == slot.end_time


def test_closure_blocks_reservation(db, seed):
    db.add(LocationClosures(
        tenant_id=1, location_id=1,
        starts_at=to_db(ny(2024, 1, 15, 12)), ends_at=to_db(ny(2024, 1, 15, 13)),
    ))
    db.commit()

    with pytest.raises(SlotConflict):
        reserve(db, ny(2024, 1, 15, 12))
    reserve(db, ny(2024, 1, 15, 13))


def test_min_notice_rejects(db, seed):
    add_rule(db, min_notice_minutes=120)

    with pytest.raises(OutOfPolicyWindow) as exc_info:
        reserve(db, ny(2024, 1, 15, 10), now=ny(2024, 1, 15, 9))

    assert exc_info.value.http_status == 422
    assert "earliest_start" in exc_info.value.details


def test_horizon_rejects(db, seed):
    add_rule(db, max_horizon_days=7)
    with pytest.raises(OutOfPolicyWindow):
        reserve(db, ny(2024, 1, 15, 10))


@pytest.mark.parametrize(
    "kwargs",
    [{"service_id": 99}, {"provider_id": 99}, {"location_id": 99}],
)
def test_unknown_catalog_entries(db, seed, kwargs):
    with pytest.raises(NotFound):
        reserve(db, ny(2024, 1, 15, 10), **kwargs)


def test_naive_start_rejected(db, seed):
    with pytest.raises(ValueError):
        reserve(db, datetime(2024, 1, 15, 10))


def test_concurrent_requests_for_same_slot(session_factory, seed):
    barrier = threading.Barrier(2)
    results, errors = [], []

    def attempt(customer_ref):
        session = session_factory()
        try:
            barrier.wait()
            results.append(reserve(session, ny(2024, 1, 15, 10), customer_ref=customer_ref))
        except SlotConflict as e:
            errors.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=attempt, args=(f"customer-{i}",)) for i in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 1
    assert len(errors) == 1

    check = session_factory()
    try:
        assert count_appointments(check) == 1
    finally:
        check.close()


def test_lock_timeout_becomes_reservation_timeout(engine, seed):
    # Second engine on the same file with a short busy timeout
    impatient = build_engine(str(engine.url), timeout_seconds=0.2)
    holder = sessionmaker(bind=engine)()
    waiter = sessionmaker(bind=impatient)()
    try:
        begin_write(holder)  # BEGIN IMMEDIATE, write lock held

        with pytest.raises(ReservationTimeout) as exc_info:
            reserve(waiter, ny(2024, 1, 15, 10))

        assert exc_info.value.retryable
        assert exc_info.value.http_status == 503
    finally:
        holder.rollback()
        holder.close()
        waiter.close()
        impatient.dispose()

    check = sessionmaker(bind=engine)()
    try:
        assert count_appointments(check) == 0
    finally:
        check.close()


def test_listing_does_not_wait_for_reservation_lock(engine, seed):
    impatient = build_engine(str(engine.url), timeout_seconds=0.2)
    holder = sessionmaker(bind=engine)()
    reader = sessionmaker(bind=impatient)()
    try:
        begin_write(holder)

        slots = list_available_slots(reader, 1, 1, 1, 1, ny(2024, 1, 15), ny(2024, 1, 16), NOW)

        assert len(slots) == 16
    finally:
        reader.close()
        holder.rollback()
        holder.close()
        impatient.dispose()


class _PgError(Exception):
    def __init__(self, pgcode):
        super().__init__("canceling statement due to lock timeout")
        self.pgcode = pgcode


def test_is_lock_timeout():
    assert _is_lock_timeout(OperationalError("SELECT", {}, _PgError("55P03")))
    assert _is_lock_timeout(OperationalError("BEGIN", {}, Exception("database is locked")))
    assert not _is_lock_timeout(OperationalError("SELECT", {}, Exception("no such table: providers")))
