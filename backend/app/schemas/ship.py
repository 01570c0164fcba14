"""Pydantic schemas for the ship catalog."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.models.base import StatusEnum
from app.schemas.country import CountryRead


class ShipCreateRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=40)
    name: str = Field(..., min_length=1, max_length=255)
    carrier: Optional[str] = Field(None, max_length=255)
    capacity: Optional[int] = Field(None, ge=0)
    country_id: Optional[int] = None
    status: Optional[StatusEnum] = None


class ShipUpdateRequest(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=40)
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    carrier: Optional[str] = Field(None, max_length=255)
    capacity: Optional[int] = Field(None, ge=0)
    country_id: Optional[int] = None
    status: Optional[StatusEnum] = None


class ShipRead(BaseModel):
    ship_id: int
    code: str
    name: str
    carrier: Optional[str] = None
    capacity: Optional[int] = None
    country_id: Optional[int] = None
    country: Optional[CountryRead] = None
    status: StatusEnum
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
