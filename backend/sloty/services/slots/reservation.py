# backend/sloty/services/slots/reservation.py
"""
Conflict-checked reservation.

    Requested ──► Confirmed / Pending   (row committed)
              └─► Rejected              (SchedulingError, nothing written)

The availability list is only a hint. This transaction re-derives the
slot from current data and re-checks it against current appointments
while holding the provider lock, so of two concurrent requests for
overlapping times on one provider exactly one commits.

Locking:
- Postgres: SELECT ... FOR UPDATE on the provider row (plus an advisory
  lock per shared resource), bounded by lock_timeout.
- SQLite: the reservation transaction begins IMMEDIATE (repo.begin_write),
  bounded by the connection busy timeout.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from ...models.generated import Appointments
from . import repository as repo
from .availability import day_pieces, get_open_days, open_extent
from .calculator import is_on_grid, resolve_capacity, resolve_duration
from .calendar import ensure_aware, resolve_zone, to_db
from .config import BookingConfig, get_booking_config
from .errors import CapacityExceeded, NotFound, ReservationTimeout, SchedulingError, SlotConflict
from .rules import check_policy_window

logger = logging.getLogger(__name__)

# lock_not_available, query_canceled, deadlock_detected, serialization_failure
RETRYABLE_PGCODES = {"55P03", "57014", "40P01", "40001"}


def reserve_slot(
    db: Session,
    tenant_id: int,
    service_id: int,
    provider_id: int,
    location_id: int,
    start_time: datetime,
    customer_ref: str,
    now: datetime,
    resource_id: int | None = None,
    require_confirmation: bool = False,
    config: BookingConfig | None = None,
) -> Appointments:
    """
    Atomically turn a slot into an appointment.

    Returns:
        The committed appointment (status "confirmed", or "pending" when
        require_confirmation is set).

    Raises:
        NotFound: service/provider/location unknown, inactive or unassigned
        OutOfPolicyWindow: start inside the notice period or beyond the horizon
        SlotConflict: slot no longer offered, or taken
        CapacityExceeded: group slot is full
        ReservationTimeout: lock not acquired in time (safe to retry)
        InvalidScheduleData: stored schedule rows are malformed
    """
    config = config or get_booking_config()
    ensure_aware(start_time, "start_time")
    ensure_aware(now, "now")
    start_time = start_time.astimezone(timezone.utc)

    try:
        appointment = _reserve(
            db, tenant_id, service_id, provider_id, location_id,
            start_time, customer_ref, now, resource_id, require_confirmation, config,
        )
        db.commit()
    except SchedulingError as e:
        db.rollback()
        logger.warning(
            f"Reservation rejected ({e.code}): tenant={tenant_id} provider={provider_id} "
            f"service={service_id} start={start_time.isoformat()}: {e.message}"
        )
        raise
    except OperationalError as e:
        db.rollback()
        if _is_lock_timeout(e):
            logger.warning(
                f"Reservation timed out: tenant={tenant_id} provider={provider_id} "
                f"start={start_time.isoformat()}"
            )
            raise ReservationTimeout(
                "Could not lock the schedule in time, please retry",
            ) from e
        raise
    except Exception:
        db.rollback()
        raise

    db.refresh(appointment)
    logger.info(
        f"Appointment {appointment.id} {appointment.status}: tenant={tenant_id} "
        f"provider={provider_id} start={appointment.start_at}"
    )
    return appointment


def _reserve(
    db: Session,
    tenant_id: int,
    service_id: int,
    provider_id: int,
    location_id: int,
    start_time: datetime,
    customer_ref: str,
    now: datetime,
    resource_id: int | None,
    require_confirmation: bool,
    config: BookingConfig,
) -> Appointments:
    # Step 1: Lock
    repo.begin_write(db)
    repo.set_lock_timeout(db, config.reservation_timeout_seconds)
    if repo.lock_provider(db, tenant_id, provider_id) is None:
        raise NotFound(f"Provider {provider_id} not found")
    if resource_id is not None:
        repo.lock_resource(db, tenant_id, resource_id)

    # Step 2: Catalog
    service = repo.get_service(db, tenant_id, service_id)
    if service is None:
        raise NotFound(f"Service {service_id} not found")
    location = repo.get_location(db, tenant_id, location_id)
    if location is None:
        raise NotFound(f"Location {location_id} not found")
    if not repo.is_provider_assigned(db, tenant_id, provider_id, location_id):
        raise NotFound(f"Provider {provider_id} does not work at location {location_id}")

    provider_service = repo.get_provider_service(db, tenant_id, provider_id, service_id)
    duration_min = resolve_duration(service, provider_service)
    if duration_min <= 0:
        raise SlotConflict("Service has no bookable duration")

    end_time = start_time + timedelta(minutes=duration_min)

    # Step 3: Notice / horizon
    rule = repo.get_booking_rule(db, tenant_id, service_id, config)
    check_policy_window(start_time, rule, now)

    # Step 4: Still offered? Recomputed from the database, never from cache
    zone = resolve_zone(location.timezone)
    open_days = get_open_days(
        db, tenant_id, provider_id, location_id, zone, start_time, end_time, config, redis=None,
    )
    piece = next((p for p in day_pieces(open_days) if p.start <= start_time < p.end), None)
    if piece is None or not is_on_grid(
        start_time, piece, duration_min, config.step_for(duration_min),
        extent=open_extent(open_days),
    ):
        raise SlotConflict("Slot is not offered at this time")

    # Step 5: Existing appointments
    overlapping = repo.get_overlapping_appointments(
        db, tenant_id, provider_id, start_time, end_time, resource_id=resource_id,
    )
    capacity = resolve_capacity(service, provider_service)

    if capacity > 1:
        if len(overlapping) + 1 > capacity:
            raise CapacityExceeded(
                f"Slot is full ({len(overlapping)}/{capacity})",
                capacity=capacity,
            )
    elif overlapping and not rule.allow_double_book:
        raise SlotConflict(
            "Slot is already booked",
            conflicting_ids=[a.id for a in overlapping],
        )

    # Step 6: Insert
    return repo.insert_appointment(
        db,
        tenant_id=tenant_id,
        location_id=location_id,
        provider_id=provider_id,
        resource_id=resource_id,
        service_id=service_id,
        customer_ref=customer_ref,
        start_at=to_db(start_time),
        end_at=to_db(end_time),
        status=repo.STATUS_PENDING if require_confirmation else repo.STATUS_CONFIRMED,
        price_cents=provider_service.price_cents if provider_service else None,
    )


def _is_lock_timeout(exc: OperationalError) -> bool:
    orig = getattr(exc, "orig", None)
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode in RETRYABLE_PGCODES:
        return True
    message = str(exc).lower()
    return "database is locked" in message or "lock timeout" in message
