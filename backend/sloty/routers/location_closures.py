# backend/sloty/routers/location_closures.py
# PATCH = 405, DELETE = ALLOWED (hard)

from fastapi import APIRouter, Depends, HTTPException, status
from redis import Redis
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.generated import LocationClosures as DBLocationClosures
from ..redis_client import get_redis
from ..schemas.location_closures import LocationClosureCreate, LocationClosureRead
from ..services.slots import invalidate_location_cache
from ..services.slots import repository as repo
from ..services.slots.calendar import from_db, to_db
from ..services.slots.invalidator import get_affected_dates_from_range
from .common import get_tenant_id

router = APIRouter(prefix="/location_closures", tags=["location_closures"])


@router.get("/", response_model=list[LocationClosureRead])
def list_location_closures(
    location_id: int,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return (
        db.query(DBLocationClosures)
        .filter(
            DBLocationClosures.tenant_id == tenant_id,
            DBLocationClosures.location_id == location_id,
        )
        .order_by(DBLocationClosures.starts_at)
        .all()
    )


@router.post(
    "/", response_model=LocationClosureRead, status_code=status.HTTP_201_CREATED
)
def create_location_closure(
    data: LocationClosureCreate,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    location = repo.get_location(db, tenant_id, data.location_id)
    if not location:
        raise HTTPException(status_code=404, detail="Location not found")

    obj = DBLocationClosures(
        tenant_id=tenant_id,
        location_id=data.location_id,
        starts_at=to_db(data.starts_at),
        ends_at=to_db(data.ends_at),
        reason=data.reason,
    )
    db.add(obj)
    db.commit()
    db.refresh(obj)

    if redis is not None:
        dates = get_affected_dates_from_range(data.starts_at, data.ends_at, location.timezone)
        invalidate_location_cache(redis, tenant_id, location.id, dates)
    return obj


@router.patch("/{id}")
def patch_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_location_closure(
    id: int,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    obj = db.query(DBLocationClosures).filter(
        DBLocationClosures.tenant_id == tenant_id,
        DBLocationClosures.id == id,
    ).first()
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")

    location_id, tz = obj.location_id, obj.location.timezone
    starts_at, ends_at = from_db(obj.starts_at), from_db(obj.ends_at)
    db.delete(obj)
    db.commit()

    if redis is not None:
        dates = get_affected_dates_from_range(starts_at, ends_at, tz)
        invalidate_location_cache(redis, tenant_id, location_id, dates)
