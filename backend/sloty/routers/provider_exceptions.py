# backend/sloty/routers/provider_exceptions.py
# PATCH = 405, DELETE = ALLOWED (hard)

from fastapi import APIRouter, Depends, HTTPException, status
from redis import Redis
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.generated import ProviderExceptions as DBProviderExceptions
from ..redis_client import get_redis
from ..schemas.provider_exceptions import ProviderExceptionCreate, ProviderExceptionRead
from ..services.slots import invalidate_provider_cache
from ..services.slots import repository as repo
from ..services.slots.calendar import from_db, to_db
from ..services.slots.invalidator import get_affected_dates_from_range
from .common import get_tenant_id

router = APIRouter(prefix="/provider_exceptions", tags=["provider_exceptions"])


def _invalidate(redis, tenant_id, provider_id, location, starts_at, ends_at) -> None:
    if redis is None:
        return
    if location is None:
        # Applies to every location: local dates differ per timezone, drop all
        invalidate_provider_cache(redis, tenant_id, provider_id)
        return
    dates = get_affected_dates_from_range(starts_at, ends_at, location.timezone)
    invalidate_provider_cache(redis, tenant_id, provider_id, location.id, dates)


@router.get("/", response_model=list[ProviderExceptionRead])
def list_provider_exceptions(
    provider_id: int,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return (
        db.query(DBProviderExceptions)
        .filter(
            DBProviderExceptions.tenant_id == tenant_id,
            DBProviderExceptions.provider_id == provider_id,
        )
        .order_by(DBProviderExceptions.starts_at)
        .all()
    )


@router.post(
    "/", response_model=ProviderExceptionRead, status_code=status.HTTP_201_CREATED
)
def create_provider_exception(
    data: ProviderExceptionCreate,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    if not repo.get_provider(db, tenant_id, data.provider_id):
        raise HTTPException(status_code=404, detail="Provider not found")

    location = None
    if data.location_id is not None:
        location = repo.get_location(db, tenant_id, data.location_id)
        if not location:
            raise HTTPException(status_code=404, detail="Location not found")

    obj = DBProviderExceptions(
        tenant_id=tenant_id,
        provider_id=data.provider_id,
        location_id=data.location_id,
        starts_at=to_db(data.starts_at),
        ends_at=to_db(data.ends_at),
        kind=data.kind,
        reason=data.reason,
    )
    db.add(obj)
    db.commit()
    db.refresh(obj)

    _invalidate(redis, tenant_id, obj.provider_id, location, data.starts_at, data.ends_at)
    return obj


@router.patch("/{id}")
def patch_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_provider_exception(
    id: int,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    obj = db.query(DBProviderExceptions).filter(
        DBProviderExceptions.tenant_id == tenant_id,
        DBProviderExceptions.id == id,
    ).first()
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")

    provider_id = obj.provider_id
    location = repo.get_location(db, tenant_id, obj.location_id) if obj.location_id else None
    starts_at, ends_at = from_db(obj.starts_at), from_db(obj.ends_at)
    db.delete(obj)
    db.commit()

    _invalidate(redis, tenant_id, provider_id, location, starts_at, ends_at)
