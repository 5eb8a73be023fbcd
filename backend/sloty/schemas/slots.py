# backend/sloty/schemas/slots.py
"""
Pydantic schemas for slots API.
"""

from datetime import datetime
from pydantic import BaseModel, Field


class SlotRead(BaseModel):
    """A single bookable window."""
    start_time: datetime
    end_time: datetime
    available: bool

    model_config = {"from_attributes": True}


class SlotsResponse(BaseModel):
    """Available slots for a service/provider/location over a range."""
    service_id: int
    provider_id: int
    location_id: int
    range_start: datetime
    range_end: datetime
    slots: list[SlotRead]
    total_slots: int = Field(description="Number of slots returned")

    model_config = {"from_attributes": True}
