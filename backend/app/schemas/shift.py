"""Pydantic schemas for shifts (turnos)."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.models.base import ShiftStatusEnum


class ShiftAssignRequest(BaseModel):
    guide_id: int = Field(..., ge=1)


class ShiftUnassignRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class ShiftRead(BaseModel):
    shift_id: int
    window_id: int
    number: int
    guide_id: Optional[int] = None
    status: ShiftStatusEnum
    start_utc: Optional[datetime] = None
    end_utc: Optional[datetime] = None
    notes: Optional[str] = None
    check_in_at: Optional[datetime] = None
    check_out_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None

    model_config = {"from_attributes": True}
