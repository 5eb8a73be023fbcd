# backend/sloty/services/slots/rules.py
"""
Booking rules: resolution and the notice/horizon filter.

Resolution order:
    service-specific rule  →  tenant default (service_id IS NULL)  →  BookingConfig defaults
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Iterator

from .calculator import Slot
from .calendar import ensure_aware
from .config import BookingConfig, get_booking_config
from .errors import OutOfPolicyWindow


@dataclass(frozen=True)
class ResolvedRule:
    min_notice_minutes: int
    max_horizon_days: int
    cancel_cutoff_minutes: int
    allow_double_book: bool
    source: str = "system"  # service / tenant / system

    def earliest_start(self, now: datetime) -> datetime:
        return now + timedelta(minutes=self.min_notice_minutes)

    def latest_start(self, now: datetime) -> datetime:
        return now + timedelta(days=self.max_horizon_days)


def _from_row(row, source: str) -> ResolvedRule:
    return ResolvedRule(
        min_notice_minutes=row.min_notice_minutes or 0,
        max_horizon_days=row.max_horizon_days if row.max_horizon_days is not None else 365,
        cancel_cutoff_minutes=row.cancel_cutoff_minutes or 0,
        allow_double_book=bool(row.allow_double_book),
        source=source,
    )


def resolve_rule(
    service_rule=None,
    tenant_rule=None,
    config: BookingConfig | None = None,
) -> ResolvedRule:
    """Pick the applicable rule; fall back to the system default."""
    if service_rule is not None:
        return _from_row(service_rule, "service")
    if tenant_rule is not None:
        return _from_row(tenant_rule, "tenant")

    config = config or get_booking_config()
    return ResolvedRule(
        min_notice_minutes=config.default_min_notice_minutes,
        max_horizon_days=config.default_max_horizon_days,
        cancel_cutoff_minutes=config.default_cancel_cutoff_minutes,
        allow_double_book=config.default_allow_double_book,
    )


def filter_slots(slots: Iterable[Slot], rule: ResolvedRule, now: datetime) -> Iterator[Slot]:
    """
    Drop slots starting inside the notice period or beyond the horizon.

    Keeps: now + min_notice <= slot.start_time <= now + max_horizon_days
    """
    ensure_aware(now, "now")
    earliest = rule.earliest_start(now)
    latest = rule.latest_start(now)

    for slot in slots:
        if earliest <= slot.start_time <= latest:
            yield slot


def check_policy_window(start_time: datetime, rule: ResolvedRule, now: datetime) -> None:
    """Raise OutOfPolicyWindow if start_time violates notice or horizon."""
    ensure_aware(now, "now")
    earliest = rule.earliest_start(now)
    latest = rule.latest_start(now)

    if start_time < earliest:
        raise OutOfPolicyWindow(
            f"Slot starts within the {rule.min_notice_minutes}-minute notice period",
            earliest_start=earliest.isoformat(),
        )
    if start_time > latest:
        raise OutOfPolicyWindow(
            f"Slot starts beyond the {rule.max_horizon_days}-day booking horizon",
            latest_start=latest.isoformat(),
        )
