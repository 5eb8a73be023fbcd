from sqlalchemy import Column, ForeignKey, Index, Integer, Text, UniqueConstraint, text

from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata


# Instants (starts_at, start_at, ...) are ISO-8601 UTC strings,
# see services/slots/calendar.py to_db()/from_db().


class Tenants(Base):
    __tablename__ = 'tenants'

    name = Column(Text, nullable=False)
    id = Column(Integer, primary_key=True)
    timezone = Column(Text, nullable=False, server_default=text("'UTC'"))
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    locations = relationship('Locations', back_populates='tenant')
    providers = relationship('Providers', back_populates='tenant')
    services = relationship('Services', back_populates='tenant')


class Locations(Base):
    __tablename__ = 'locations'

    tenant_id = Column(ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    name = Column(Text, nullable=False)
    timezone = Column(Text, nullable=False)
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)

    tenant = relationship('Tenants', back_populates='locations')
    closures = relationship('LocationClosures', back_populates='location')
    working_hours = relationship('WorkingHours', back_populates='location')


class Providers(Base):
    __tablename__ = 'providers'

    tenant_id = Column(ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    display_name = Column(Text, nullable=False)
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)

    tenant = relationship('Tenants', back_populates='providers')
    working_hours = relationship('WorkingHours', back_populates='provider')
    provider_services = relationship('ProviderServices', back_populates='provider')
    provider_locations = relationship('ProviderLocations', back_populates='provider')
    appointments = relationship('Appointments', back_populates='provider')


class ProviderLocations(Base):
    __tablename__ = 'provider_locations'
    __table_args__ = (
        UniqueConstraint('provider_id', 'location_id'),
    )

    tenant_id = Column(ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    provider_id = Column(ForeignKey('providers.id', ondelete='CASCADE'), nullable=False)
    location_id = Column(ForeignKey('locations.id', ondelete='CASCADE'), nullable=False)
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)

    provider = relationship('Providers', back_populates='provider_locations')
    location = relationship('Locations')


class Services(Base):
    __tablename__ = 'services'

    tenant_id = Column(ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    name = Column(Text, nullable=False)
    default_duration_minutes = Column(Integer, nullable=False)
    default_capacity = Column(Integer, nullable=False, server_default=text('1'))
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)
    description = Column(Text)

    tenant = relationship('Tenants', back_populates='services')
    provider_services = relationship('ProviderServices', back_populates='service')
    booking_rules = relationship('BookingRules', back_populates='service')


class ProviderServices(Base):
    __tablename__ = 'provider_services'
    __table_args__ = (
        UniqueConstraint('provider_id', 'service_id'),
    )

    tenant_id = Column(ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    provider_id = Column(ForeignKey('providers.id', ondelete='CASCADE'), nullable=False)
    service_id = Column(ForeignKey('services.id', ondelete='CASCADE'), nullable=False)
    price_cents = Column(Integer, nullable=False, server_default=text('0'))
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)
    duration_minutes = Column(Integer)
    capacity_override = Column(Integer)

    provider = relationship('Providers', back_populates='provider_services')
    service = relationship('Services', back_populates='provider_services')


class WorkingHours(Base):
    __tablename__ = 'working_hours'
    __table_args__ = (
        Index('ix_working_hours_provider_location', 'provider_id', 'location_id'),
    )

    tenant_id = Column(ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    provider_id = Column(ForeignKey('providers.id', ondelete='CASCADE'), nullable=False)
    location_id = Column(ForeignKey('locations.id', ondelete='CASCADE'), nullable=False)
    weekday = Column(Integer, nullable=False)  # 0 = Monday, 6 = Sunday
    start_local_time = Column(Text, nullable=False)  # "HH:MM"
    end_local_time = Column(Text, nullable=False)  # "HH:MM"
    id = Column(Integer, primary_key=True)

    provider = relationship('Providers', back_populates='working_hours')
    location = relationship('Locations', back_populates='working_hours')


class LocationClosures(Base):
    __tablename__ = 'location_closures'
    __table_args__ = (
        Index('ix_location_closures_location_range', 'location_id', 'starts_at', 'ends_at'),
    )

    tenant_id = Column(ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    location_id = Column(ForeignKey('locations.id', ondelete='CASCADE'), nullable=False)
    starts_at = Column(Text, nullable=False)
    ends_at = Column(Text, nullable=False)
    id = Column(Integer, primary_key=True)
    reason = Column(Text)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    location = relationship('Locations', back_populates='closures')


class ProviderExceptions(Base):
    __tablename__ = 'provider_exceptions'

    tenant_id = Column(ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    provider_id = Column(ForeignKey('providers.id', ondelete='CASCADE'), nullable=False)
    starts_at = Column(Text, nullable=False)
    ends_at = Column(Text, nullable=False)
    kind = Column(Text, nullable=False, server_default=text("'time_off'"))  # time_off / extra_hours
    id = Column(Integer, primary_key=True)
    location_id = Column(ForeignKey('locations.id', ondelete='CASCADE'))  # NULL = every location
    reason = Column(Text)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))


class BookingRules(Base):
    __tablename__ = 'booking_rules'
    __table_args__ = (
        UniqueConstraint('tenant_id', 'service_id'),
    )

    tenant_id = Column(ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    min_notice_minutes = Column(Integer, nullable=False, server_default=text('0'))
    max_horizon_days = Column(Integer, nullable=False, server_default=text('365'))
    cancel_cutoff_minutes = Column(Integer, nullable=False, server_default=text('0'))
    allow_double_book = Column(Integer, nullable=False, server_default=text('0'))
    id = Column(Integer, primary_key=True)
    service_id = Column(ForeignKey('services.id', ondelete='CASCADE'))  # NULL = tenant default

    service = relationship('Services', back_populates='booking_rules')


class Appointments(Base):
    __tablename__ = 'appointments'
    __table_args__ = (
        Index('ix_appointments_provider_range', 'provider_id', 'start_at', 'end_at'),
        Index('ix_appointments_resource_range', 'resource_id', 'start_at', 'end_at'),
    )

    tenant_id = Column(ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False)
    location_id = Column(ForeignKey('locations.id'), nullable=False)
    provider_id = Column(ForeignKey('providers.id', ondelete='CASCADE'), nullable=False)
    service_id = Column(ForeignKey('services.id'), nullable=False)
    customer_ref = Column(Text, nullable=False)
    start_at = Column(Text, nullable=False)
    end_at = Column(Text, nullable=False)
    status = Column(Text, nullable=False, server_default=text("'pending'"))
    created_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    id = Column(Integer, primary_key=True)
    resource_id = Column(Integer)
    price_cents = Column(Integer)

    provider = relationship('Providers', back_populates='appointments')
    location = relationship('Locations')
    service = relationship('Services')
