# backend/sloty/schemas/location_closures.py

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, model_validator


class LocationClosureCreate(BaseModel):
    location_id: int
    starts_at: datetime
    ends_at: datetime
    reason: Optional[str] = None

    model_config = {"from_attributes": True}

    @model_validator(mode="after")
    def valid_range(self):
        if self.starts_at.tzinfo is None or self.ends_at.tzinfo is None:
            raise ValueError("starts_at and ends_at must include a UTC offset")
        if self.starts_at >= self.ends_at:
            raise ValueError("starts_at must be before ends_at")
        return self


class LocationClosureRead(BaseModel):
    id: int
    tenant_id: int
    location_id: int
    starts_at: datetime
    ends_at: datetime
    reason: Optional[str] = None

    model_config = {"from_attributes": True}
