# backend/sloty/schemas/provider_exceptions.py

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, model_validator


class ProviderExceptionCreate(BaseModel):
    provider_id: int
    location_id: Optional[int] = None  # None = every location
    starts_at: datetime
    ends_at: datetime
    kind: Literal["time_off", "extra_hours"] = "time_off"
    reason: Optional[str] = None

    model_config = {"from_attributes": True}

    @model_validator(mode="after")
    def valid_range(self):
        if self.starts_at.tzinfo is None or self.ends_at.tzinfo is None:
            raise ValueError("starts_at and ends_at must include a UTC offset")
        if self.starts_at >= self.ends_at:
            raise ValueError("starts_at must be before ends_at")
        return self


class ProviderExceptionRead(BaseModel):
    id: int
    tenant_id: int
    provider_id: int
    location_id: Optional[int] = None
    starts_at: datetime
    ends_at: datetime
    kind: str
    reason: Optional[str] = None

    model_config = {"from_attributes": True}
