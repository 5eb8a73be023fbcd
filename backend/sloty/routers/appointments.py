# backend/sloty/routers/appointments.py
# PATCH = 405, DELETE = 405 (cancellation/completion live in the backoffice)

from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.generated import Appointments as DBAppointments
from ..schemas.appointments import AppointmentCreate, AppointmentRead
from ..services.events import appointment_payload, emit_event
from ..services.slots import SchedulingError, get_booking_config, reserve_slot
from .common import get_tenant_id, scheduling_http_error

router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.get("/{id}", response_model=AppointmentRead)
def get_appointment(
    id: int,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    obj = db.query(DBAppointments).filter(
        DBAppointments.tenant_id == tenant_id,
        DBAppointments.id == id,
    ).first()
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")
    return obj


@router.post("/", response_model=AppointmentRead, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: AppointmentCreate,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    """Reserve a slot. 409 = pick another time, 503 = try again."""
    try:
        obj = reserve_slot(
            db=db,
            tenant_id=tenant_id,
            service_id=data.service_id,
            provider_id=data.provider_id,
            location_id=data.location_id,
            start_time=data.start_time,
            customer_ref=data.customer_ref,
            now=datetime.now(timezone.utc),
            resource_id=data.resource_id,
            require_confirmation=data.require_confirmation,
            config=get_booking_config(),
        )
    except SchedulingError as e:
        raise scheduling_http_error(e)

    emit_event("appointment_created", appointment_payload(obj))
    return obj


@router.patch("/{id}")
def patch_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )


@router.delete("/{id}")
def delete_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )
