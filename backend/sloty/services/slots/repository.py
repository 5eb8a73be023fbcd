# backend/sloty/services/slots/repository.py
"""
Data access for the availability engine.

Every query is parameterised by a single tenant_id; nothing here reads
across tenants. Rows come back as ORM objects and are fed straight into
the pure functions of aggregator / calculator / rules.
"""

from datetime import datetime

from sqlalchemy import or_, text
from sqlalchemy.orm import Session

from ...database import WRITE_LOCK_OPTION
from ...models.generated import (
    Appointments,
    BookingRules,
    LocationClosures,
    Locations,
    ProviderExceptions,
    ProviderLocations,
    Providers,
    ProviderServices,
    Services,
    WorkingHours,
)
from .calendar import to_db
from .config import BookingConfig
from .rules import ResolvedRule, resolve_rule

STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_CANCELED = "canceled"
STATUS_COMPLETED = "completed"
ACTIVE_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED)


# ── Catalog ──────────────────────────────────────────────────────────────


def get_service(db: Session, tenant_id: int, service_id: int) -> Services | None:
    """Get active service by ID."""
    return db.query(Services).filter(
        Services.tenant_id == tenant_id,
        Services.id == service_id,
        Services.is_active == 1,
    ).first()


def get_provider(db: Session, tenant_id: int, provider_id: int) -> Providers | None:
    """Get active provider by ID."""
    return db.query(Providers).filter(
        Providers.tenant_id == tenant_id,
        Providers.id == provider_id,
        Providers.is_active == 1,
    ).first()


def get_location(db: Session, tenant_id: int, location_id: int) -> Locations | None:
    """Get active location by ID."""
    return db.query(Locations).filter(
        Locations.tenant_id == tenant_id,
        Locations.id == location_id,
        Locations.is_active == 1,
    ).first()


def get_provider_service(
    db: Session, tenant_id: int, provider_id: int, service_id: int
) -> ProviderServices | None:
    """Provider's override for a service, if any (active only)."""
    return db.query(ProviderServices).filter(
        ProviderServices.tenant_id == tenant_id,
        ProviderServices.provider_id == provider_id,
        ProviderServices.service_id == service_id,
        ProviderServices.is_active == 1,
    ).first()


def is_provider_assigned(db: Session, tenant_id: int, provider_id: int, location_id: int) -> bool:
    """Is the provider actively assigned to the location?"""
    return db.query(ProviderLocations.id).filter(
        ProviderLocations.tenant_id == tenant_id,
        ProviderLocations.provider_id == provider_id,
        ProviderLocations.location_id == location_id,
        ProviderLocations.is_active == 1,
    ).first() is not None


# ── Availability sources ─────────────────────────────────────────────────


def get_working_hours(
    db: Session, tenant_id: int, provider_id: int, location_id: int
) -> list[WorkingHours]:
    """Weekly working-hours template of a provider at a location."""
    return (
        db.query(WorkingHours)
        .filter(
            WorkingHours.tenant_id == tenant_id,
            WorkingHours.provider_id == provider_id,
            WorkingHours.location_id == location_id,
        )
        .order_by(WorkingHours.weekday, WorkingHours.start_local_time)
        .all()
    )


def get_closures(
    db: Session,
    tenant_id: int,
    location_id: int,
    range_start: datetime,
    range_end: datetime,
) -> list[LocationClosures]:
    """Closures of a location intersecting [range_start, range_end)."""
    return (
        db.query(LocationClosures)
        .filter(
            LocationClosures.tenant_id == tenant_id,
            LocationClosures.location_id == location_id,
            LocationClosures.starts_at < to_db(range_end),
            LocationClosures.ends_at > to_db(range_start),
        )
        .order_by(LocationClosures.starts_at)
        .all()
    )


def get_provider_exceptions(
    db: Session,
    tenant_id: int,
    provider_id: int,
    location_id: int,
    range_start: datetime,
    range_end: datetime,
) -> list[ProviderExceptions]:
    """Provider exceptions for this location (or all locations) intersecting the range."""
    return (
        db.query(ProviderExceptions)
        .filter(
            ProviderExceptions.tenant_id == tenant_id,
            ProviderExceptions.provider_id == provider_id,
            or_(
                ProviderExceptions.location_id == location_id,
                ProviderExceptions.location_id.is_(None),
            ),
            ProviderExceptions.starts_at < to_db(range_end),
            ProviderExceptions.ends_at > to_db(range_start),
        )
        .order_by(ProviderExceptions.starts_at)
        .all()
    )


def get_booking_rule(
    db: Session,
    tenant_id: int,
    service_id: int,
    config: BookingConfig | None = None,
) -> ResolvedRule:
    """Service rule beats tenant default; one query fetches both candidates."""
    rows = (
        db.query(BookingRules)
        .filter(
            BookingRules.tenant_id == tenant_id,
            or_(
                BookingRules.service_id == service_id,
                BookingRules.service_id.is_(None),
            ),
        )
        .all()
    )
    service_rule = next((r for r in rows if r.service_id == service_id), None)
    tenant_rule = next((r for r in rows if r.service_id is None), None)
    return resolve_rule(service_rule, tenant_rule, config)


# ── Appointments ─────────────────────────────────────────────────────────


def get_overlapping_appointments(
    db: Session,
    tenant_id: int,
    provider_id: int,
    start: datetime,
    end: datetime,
    resource_id: int | None = None,
    statuses: tuple[str, ...] = ACTIVE_STATUSES,
) -> list[Appointments]:
    """
    Appointments overlapping [start, end) that occupy the provider,
    or the resource when one is given.
    """
    occupant = Appointments.provider_id == provider_id
    if resource_id is not None:
        occupant = or_(occupant, Appointments.resource_id == resource_id)

    return (
        db.query(Appointments)
        .filter(
            Appointments.tenant_id == tenant_id,
            occupant,
            Appointments.status.in_(statuses),
            Appointments.start_at < to_db(end),
            Appointments.end_at > to_db(start),
        )
        .order_by(Appointments.start_at)
        .all()
    )


def insert_appointment(db: Session, **data) -> Appointments:
    """Add an appointment row and flush it (caller owns the transaction)."""
    obj = Appointments(**data)
    db.add(obj)
    db.flush()
    return obj


def begin_write(db: Session) -> None:
    """
    Start the reservation transaction.

    On SQLite it begins IMMEDIATE, taking the database write lock before
    anything is read (bounded by the busy timeout). A transaction left open
    by earlier work on this session is committed first.
    """
    if db.in_transaction():
        db.commit()
    db.connection(execution_options={WRITE_LOCK_OPTION: True})


def lock_provider(db: Session, tenant_id: int, provider_id: int) -> Providers | None:
    """
    SELECT ... FOR UPDATE on the provider row.

    Serialises reservations per provider on Postgres. SQLite ignores
    FOR UPDATE; there begin_write() already holds the database write lock.
    """
    return (
        db.query(Providers)
        .filter(
            Providers.tenant_id == tenant_id,
            Providers.id == provider_id,
            Providers.is_active == 1,
        )
        .with_for_update()
        .first()
    )


def lock_resource(db: Session, tenant_id: int, resource_id: int) -> None:
    """
    Transaction-scoped advisory lock on a shared resource (room, device).

    Two providers booking the same resource are not serialised by the
    provider lock, so Postgres takes an advisory lock keyed on the resource.
    """
    if db.get_bind().dialect.name != "postgresql":
        return
    db.execute(
        text("SELECT pg_advisory_xact_lock(CAST(:tenant_id AS integer), CAST(:resource_id AS integer))"),
        {"tenant_id": tenant_id, "resource_id": resource_id},
    )


def set_lock_timeout(db: Session, timeout_seconds: float) -> None:
    """Bound lock waits for the current transaction (Postgres only)."""
    if db.get_bind().dialect.name != "postgresql":
        return
    db.execute(text(f"SET LOCAL lock_timeout = '{int(timeout_seconds * 1000)}ms'"))
