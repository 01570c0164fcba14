"""Pydantic schemas for port calls (recaladas)."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from app.models.base import PortCallSourceEnum, PortCallStatusEnum, StatusEnum


class PortCallCreateRequest(BaseModel):
    ship_id: int = Field(..., ge=1)
    origin_country_id: int = Field(..., ge=1)
    scheduled_arrival_utc: datetime
    scheduled_departure_utc: Optional[datetime] = None
    terminal: Optional[str] = Field(None, max_length=120)
    berth: Optional[str] = Field(None, max_length=60)
    estimated_passengers: Optional[int] = Field(None, ge=0)
    estimated_crew: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None
    source: Optional[PortCallSourceEnum] = None
    status: Optional[StatusEnum] = None

    @model_validator(mode="after")
    def departure_after_arrival(self):
        if self.scheduled_departure_utc is not None and self.scheduled_departure_utc < self.scheduled_arrival_utc:
            raise ValueError("scheduled_departure_utc must be >= scheduled_arrival_utc")
        return self


class PortCallUpdateRequest(BaseModel):
    ship_id: Optional[int] = Field(None, ge=1)
    origin_country_id: Optional[int] = Field(None, ge=1)
    scheduled_arrival_utc: Optional[datetime] = None
    scheduled_departure_utc: Optional[datetime] = None
    terminal: Optional[str] = Field(None, max_length=120)
    berth: Optional[str] = Field(None, max_length=60)
    estimated_passengers: Optional[int] = Field(None, ge=0)
    estimated_crew: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None
    source: Optional[PortCallSourceEnum] = None

    @model_validator(mode="after")
    def departure_after_arrival(self):
        if (
            self.scheduled_arrival_utc is not None
            and self.scheduled_departure_utc is not None
            and self.scheduled_departure_utc < self.scheduled_arrival_utc
        ):
            raise ValueError("scheduled_departure_utc must be >= scheduled_arrival_utc")
        return self


class PortCallArriveRequest(BaseModel):
    arrived_at_utc: Optional[datetime] = None


class PortCallDepartRequest(BaseModel):
    departed_at_utc: Optional[datetime] = None


class PortCallCancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class PortCallRead(BaseModel):
    port_call_id: int
    code: str
    ship_id: int
    origin_country_id: int
    supervisor_id: int
    scheduled_arrival_utc: datetime
    scheduled_departure_utc: Optional[datetime] = None
    arrived_at_utc: Optional[datetime] = None
    departed_at_utc: Optional[datetime] = None
    status: StatusEnum
    operational_status: PortCallStatusEnum
    terminal: Optional[str] = None
    berth: Optional[str] = None
    estimated_passengers: Optional[int] = None
    estimated_crew: Optional[int] = None
    notes: Optional[str] = None
    source: PortCallSourceEnum
    canceled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None

    model_config = {"from_attributes": True}
