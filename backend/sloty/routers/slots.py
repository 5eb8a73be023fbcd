# backend/sloty/routers/slots.py
"""
Slots API endpoints.

GET  /slots             - Available slots for service/provider/location over a range
POST /slots/invalidate  - Drop cached open intervals (admin endpoint)
"""

from datetime import datetime, timedelta, timezone
from fastapi import APIRouter, Depends, HTTPException
from redis import Redis
from sqlalchemy.orm import Session

from ..database import get_db
from ..redis_client import get_redis
from ..schemas.slots import SlotRead, SlotsResponse
from ..services.slots import (
    InvalidScheduleData,
    get_booking_config,
    invalidate_location_cache,
    invalidate_provider_cache,
    list_available_slots,
)
from .common import get_tenant_id, scheduling_http_error

MAX_RANGE_DAYS = 62

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("", response_model=SlotsResponse)
def get_slots(
    service_id: int,
    provider_id: int,
    location_id: int,
    range_start: datetime,
    range_end: datetime,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    """List bookable slots starting in [range_start, range_end)."""
    if range_start.tzinfo is None or range_end.tzinfo is None:
        raise HTTPException(status_code=400, detail="range_start and range_end must include a UTC offset")
    if range_end <= range_start:
        raise HTTPException(status_code=400, detail="range_end must be after range_start")
    if range_end - range_start > timedelta(days=MAX_RANGE_DAYS):
        raise HTTPException(status_code=400, detail=f"Range cannot exceed {MAX_RANGE_DAYS} days")

    try:
        slots = list_available_slots(
            db=db,
            tenant_id=tenant_id,
            service_id=service_id,
            provider_id=provider_id,
            location_id=location_id,
            range_start=range_start,
            range_end=range_end,
            now=datetime.now(timezone.utc),
            config=get_booking_config(),
            redis=redis,
        )
    except InvalidScheduleData as e:
        raise scheduling_http_error(e)

    return SlotsResponse(
        service_id=service_id,
        provider_id=provider_id,
        location_id=location_id,
        range_start=range_start,
        range_end=range_end,
        slots=[SlotRead.model_validate(s) for s in slots],
        total_slots=len(slots),
    )


@router.post("/invalidate")
def invalidate_slots_cache(
    location_id: int,
    provider_id: int | None = None,
    tenant_id: int = Depends(get_tenant_id),
    redis: Redis | None = Depends(get_redis),
):
    """Manually invalidate slots cache for a location or one provider there."""
    if redis is None:
        return {"location_id": location_id, "provider_id": provider_id, "deleted_keys": 0}

    if provider_id is None:
        deleted = invalidate_location_cache(redis, tenant_id, location_id)
    else:
        deleted = invalidate_provider_cache(redis, tenant_id, provider_id, location_id)

    return {
        "location_id": location_id,
        "provider_id": provider_id,
        "deleted_keys": deleted,
    }
