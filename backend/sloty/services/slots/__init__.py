# backend/sloty/services/slots/__init__.py
"""
Availability and reservation engine.

Read path:  aggregator → calculator → rules  (list_available_slots)
Write path: reservation re-derives and re-checks at commit (reserve_slot)
"""

from .config import BookingConfig, get_booking_config
from .calculator import Slot, generate_slots
from .errors import (
    CapacityExceeded,
    InvalidScheduleData,
    NotFound,
    OutOfPolicyWindow,
    ReservationTimeout,
    SchedulingError,
    SlotConflict,
)
from .redis_store import SlotsRedisStore
from .invalidator import invalidate_location_cache, invalidate_provider_cache
from .availability import list_available_slots
from .reservation import reserve_slot

__all__ = [
    "BookingConfig",
    "get_booking_config",
    "Slot",
    "generate_slots",
    "CapacityExceeded",
    "InvalidScheduleData",
    "NotFound",
    "OutOfPolicyWindow",
    "ReservationTimeout",
    "SchedulingError",
    "SlotConflict",
    "SlotsRedisStore",
    "invalidate_location_cache",
    "invalidate_provider_cache",
    "list_available_slots",
    "reserve_slot",
]
