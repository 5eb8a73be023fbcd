# backend/sloty/routers/working_hours.py
# PATCH = 405, DELETE = ALLOWED (hard)

from fastapi import APIRouter, Depends, HTTPException, status
from redis import Redis
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.generated import WorkingHours as DBWorkingHours
from ..redis_client import get_redis
from ..schemas.working_hours import WorkingHoursCreate, WorkingHoursRead
from ..services.slots import InvalidScheduleData, invalidate_provider_cache
from ..services.slots import repository as repo
from ..services.slots.aggregator import hours_by_weekday
from .common import get_tenant_id

router = APIRouter(prefix="/working_hours", tags=["working_hours"])


@router.get("/", response_model=list[WorkingHoursRead])
def list_working_hours(
    provider_id: int,
    location_id: int,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return repo.get_working_hours(db, tenant_id, provider_id, location_id)


@router.post("/", response_model=WorkingHoursRead, status_code=status.HTTP_201_CREATED)
def create_working_hours(
    data: WorkingHoursCreate,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    if not repo.get_provider(db, tenant_id, data.provider_id):
        raise HTTPException(status_code=404, detail="Provider not found")
    if not repo.get_location(db, tenant_id, data.location_id):
        raise HTTPException(status_code=404, detail="Location not found")

    obj = DBWorkingHours(tenant_id=tenant_id, **data.model_dump())

    existing = repo.get_working_hours(db, tenant_id, data.provider_id, data.location_id)
    try:
        hours_by_weekday([*existing, obj])
    except InvalidScheduleData as e:
        raise HTTPException(status_code=409, detail=e.message)

    db.add(obj)
    db.commit()
    db.refresh(obj)

    if redis is not None:
        invalidate_provider_cache(redis, tenant_id, obj.provider_id, obj.location_id)
    return obj


@router.patch("/{id}")
def patch_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_working_hours(
    id: int,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
):
    obj = db.query(DBWorkingHours).filter(
        DBWorkingHours.tenant_id == tenant_id,
        DBWorkingHours.id == id,
    ).first()
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")

    provider_id, location_id = obj.provider_id, obj.location_id
    db.delete(obj)
    db.commit()

    if redis is not None:
        invalidate_provider_cache(redis, tenant_id, provider_id, location_id)
