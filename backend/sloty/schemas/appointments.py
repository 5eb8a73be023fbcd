# backend/sloty/schemas/appointments.py

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class AppointmentCreate(BaseModel):
    service_id: int
    provider_id: int
    location_id: int
    resource_id: Optional[int] = None

    start_time: datetime
    customer_ref: str = Field(min_length=1, max_length=200)

    # Leave the appointment pending until staff confirms it
    require_confirmation: bool = False

    model_config = {"from_attributes": True}

    @field_validator("start_time")
    @classmethod
    def start_time_aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            raise ValueError("start_time must include a UTC offset")
        return v


class AppointmentRead(BaseModel):
    id: int

    tenant_id: int
    location_id: int
    provider_id: int
    service_id: int
    resource_id: Optional[int] = None

    customer_ref: str
    start_at: datetime
    end_at: datetime

    status: str
    price_cents: Optional[int] = None

    model_config = {"from_attributes": True}
