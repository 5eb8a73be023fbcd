"""
Booking configuration for slots calculation.
"""

from dataclasses import dataclass
from functools import lru_cache

from ...config import settings


@dataclass(frozen=True)
class BookingConfig:
    """
    Configuration for the availability/reservation engine.

    Attributes:
        default_min_notice_minutes: Notice used when no booking rule exists
        default_max_horizon_days: Horizon used when no booking rule exists
        default_cancel_cutoff_minutes: Cancel cutoff used when no booking rule exists
        default_allow_double_book: Double booking used when no booking rule exists
        slot_step_minutes: Booking granularity; None = slot duration (back-to-back)
        cache_ttl_seconds: Redis cache TTL for per-day open intervals
        reservation_timeout_seconds: Lock wait budget for one reservation
    """
    default_min_notice_minutes: int = 0
    default_max_horizon_days: int = 365
    default_cancel_cutoff_minutes: int = 0
    default_allow_double_book: bool = False
    slot_step_minutes: int | None = None
    cache_ttl_seconds: int = 86400  # 24 hours
    reservation_timeout_seconds: float = 5.0

    def __post_init__(self):
        """Validate configuration."""
        if self.slot_step_minutes is not None and self.slot_step_minutes <= 0:
            raise ValueError(f"slot_step_minutes must be positive, got {self.slot_step_minutes}")
        if self.default_min_notice_minutes < 0:
            raise ValueError("default_min_notice_minutes must be >= 0")
        if self.default_max_horizon_days < 0:
            raise ValueError("default_max_horizon_days must be >= 0")
        if self.reservation_timeout_seconds <= 0:
            raise ValueError("reservation_timeout_seconds must be positive")

    def step_for(self, duration_minutes: int) -> int:
        """Step between slot starts for a given duration."""
        return self.slot_step_minutes or duration_minutes


@lru_cache
def get_booking_config() -> BookingConfig:
    """Get booking configuration (singleton)."""
    return BookingConfig(
        reservation_timeout_seconds=settings.reservation_timeout_seconds,
    )


def time_str_to_minutes(time_str: str) -> int:
    """Convert "HH:MM" to minutes since midnight."""
    hours, minutes = time_str.split(":")
    return int(hours) * 60 + int(minutes)
