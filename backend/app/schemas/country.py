"""Pydantic schemas for the country catalog."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.models.base import StatusEnum


class CountryCreateRequest(BaseModel):
    code: str = Field(..., min_length=2, max_length=10)
    name: str = Field(..., min_length=1, max_length=120)
    status: Optional[StatusEnum] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()


class CountryUpdateRequest(BaseModel):
    code: Optional[str] = Field(None, min_length=2, max_length=10)
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    status: Optional[StatusEnum] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v is not None else v


class CountryRead(BaseModel):
    country_id: int
    code: str
    name: str
    status: StatusEnum
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
