"""Pydantic schemas for service windows (atenciones)."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from app.models.base import ServiceWindowStatusEnum, StatusEnum
from app.schemas.shift import ShiftRead


class ServiceWindowCreateRequest(BaseModel):
    port_call_id: int = Field(..., ge=1)
    start_utc: datetime
    end_utc: datetime
    total_slots: int = Field(..., ge=1, le=500)
    description: Optional[str] = None

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end_utc < self.start_utc:
            raise ValueError("end_utc must be >= start_utc")
        return self


class ServiceWindowUpdateRequest(BaseModel):
    start_utc: Optional[datetime] = None
    end_utc: Optional[datetime] = None
    total_slots: Optional[int] = Field(None, ge=1, le=500)
    description: Optional[str] = None
    status: Optional[StatusEnum] = None


class ServiceWindowCancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class ServiceWindowRead(BaseModel):
    window_id: int
    port_call_id: int
    supervisor_id: int
    start_utc: datetime
    end_utc: datetime
    total_slots: int
    description: Optional[str] = None
    status: StatusEnum
    operational_status: ServiceWindowStatusEnum
    canceled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None

    model_config = {"from_attributes": True}


class ServiceWindowDetail(ServiceWindowRead):
    shifts: list[ShiftRead] = []
    slot_summary: dict[str, int] = {}


class ServiceWindowSummary(BaseModel):
    window_id: int
    total_slots: int
    operational_status: ServiceWindowStatusEnum
    slot_summary: dict[str, int]
