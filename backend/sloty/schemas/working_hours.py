# backend/sloty/schemas/working_hours.py

from pydantic import BaseModel, Field, model_validator

from ..services.slots.calendar import parse_local_time
from ..services.slots.errors import InvalidScheduleData

TIME_PATTERN = r"^\d{2}:\d{2}$"


class WorkingHoursCreate(BaseModel):
    provider_id: int
    location_id: int
    weekday: int = Field(ge=0, le=6, description="0 = Monday, 6 = Sunday")
    start_local_time: str = Field(pattern=TIME_PATTERN, examples=["09:00"])
    end_local_time: str = Field(pattern=TIME_PATTERN, examples=["17:00"])

    model_config = {"from_attributes": True}

    @model_validator(mode="after")
    def start_before_end(self):
        try:
            start = parse_local_time(self.start_local_time)
            end = parse_local_time(self.end_local_time, allow_end_of_day=True)
        except InvalidScheduleData as e:
            raise ValueError(str(e)) from e
        if start >= end:
            raise ValueError("start_local_time must be before end_local_time")
        return self


class WorkingHoursRead(BaseModel):
    id: int
    tenant_id: int
    provider_id: int
    location_id: int
    weekday: int
    start_local_time: str
    end_local_time: str

    model_config = {"from_attributes": True}
