from .generated import (
    Appointments,
    Base,
    BookingRules,
    LocationClosures,
    Locations,
    ProviderExceptions,
    ProviderLocations,
    Providers,
    ProviderServices,
    Services,
    Tenants,
    WorkingHours,
    metadata,
)

__all__ = [
    "Appointments",
    "Base",
    "BookingRules",
    "LocationClosures",
    "Locations",
    "ProviderExceptions",
    "ProviderLocations",
    "Providers",
    "ProviderServices",
    "Services",
    "Tenants",
    "WorkingHours",
    "metadata",
]
