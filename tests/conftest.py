"""Pytest configuration and fixtures."""

from datetime import datetime, timezone
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy.orm import sessionmaker

from sloty.database import build_engine, init_db
from sloty.models import (
    BookingRules,
    Locations,
    ProviderLocations,
    Providers,
    ProviderServices,
    Services,
    Tenants,
    WorkingHours,
)
from sloty.services.slots import BookingConfig

NY = ZoneInfo("America/New_York")
UTC = timezone.utc

# 2024-01-15 is a Monday; New York is UTC-5 in January
MONDAY = datetime(2024, 1, 15, tzinfo=NY).date()


def ny(year, month, day, hour=0, minute=0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=NY)


def row(**kwargs) -> SimpleNamespace:
    """Lightweight stand-in for an ORM row in pure-function tests."""
    return SimpleNamespace(**kwargs)


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'sloty.db'}", timeout_seconds=5)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def config() -> BookingConfig:
    return BookingConfig()


def _seed(session) -> SimpleNamespace:
    tenant = Tenants(id=1, name="Demo Clinic", timezone="America/New_York")
    other_tenant = Tenants(id=2, name="Other Clinic", timezone="UTC")
    location = Locations(id=1, tenant_id=1, name="Main Office", timezone="America/New_York")
    provider = Providers(id=1, tenant_id=1, display_name="Dr. Smith")
    second_provider = Providers(id=2, tenant_id=1, display_name="Dr. Johnson")
    consult = Services(id=1, tenant_id=1, name="General Consultation", default_duration_minutes=30)
    session.add_all([tenant, other_tenant, location, provider, second_provider, consult])
    session.flush()

    session.add_all([
        ProviderLocations(tenant_id=1, provider_id=1, location_id=1),
        ProviderLocations(tenant_id=1, provider_id=2, location_id=1),
    ])
    # Mon–Fri 09:00–17:00 for both providers
    for provider_id in (1, 2):
        for weekday in range(5):
            session.add(WorkingHours(
                tenant_id=1,
                provider_id=provider_id,
                location_id=1,
                weekday=weekday,
                start_local_time="09:00",
                end_local_time="17:00",
            ))
    session.commit()

    return SimpleNamespace(tenant_id=1, location_id=1, provider_id=1, second_provider_id=2, service_id=1)


@pytest.fixture
def seed(db) -> SimpleNamespace:
    """Tenant 1 with one NY location, two providers, a 30-minute service."""
    return _seed(db)


def add_service(session, service_id, duration, capacity=1, provider_id=None, **override) -> None:
    session.add(Services(
        id=service_id,
        tenant_id=1,
        name=f"Service {service_id}",
        default_duration_minutes=duration,
        default_capacity=capacity,
    ))
    if provider_id is not None:
        session.add(ProviderServices(
            tenant_id=1, provider_id=provider_id, service_id=service_id, **override,
        ))
    session.commit()


def add_rule(session, service_id=None, **fields) -> None:
    session.add(BookingRules(tenant_id=1, service_id=service_id, **fields))
    session.commit()


def add_round_the_clock_provider(session, provider_id=3) -> None:
    """A provider at location 1 open 00:00–24:00 every day of the week."""
    session.add(Providers(id=provider_id, tenant_id=1, display_name="Night Desk"))
    session.add(ProviderLocations(tenant_id=1, provider_id=provider_id, location_id=1))
    for weekday in range(7):
        session.add(WorkingHours(
            tenant_id=1, provider_id=provider_id, location_id=1, weekday=weekday,
            start_local_time="00:00", end_local_time="24:00",
        ))
    session.commit()
