"""Pydantic schemas for user accounts."""
from __future__ import annotations

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from app.models.base import ProfileStatusEnum, RoleEnum

_PHONE_RE = re.compile(r"^[0-9+\-\s()]+$")
_SPECIALS = "@$!%*?&"


def _check_phone(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not 7 <= len(v) <= 20 or not _PHONE_RE.match(v):
        raise ValueError("Invalid phone number format")
    return v


class UserCreateRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=8, max_length=128)
    role: RoleEnum
    first_name: Optional[str] = Field(None, max_length=120)
    last_name: Optional[str] = Field(None, max_length=120)

    @field_validator("email")
    @classmethod
    def email_must_look_valid(cls, v: str) -> str:
        v = v.strip().lower()
        local, _, domain = v.partition("@")
        if not local or "." not in domain:
            raise ValueError("Invalid email address")
        return v


class ProfileCompleteRequest(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=120)
    last_name: str = Field(..., min_length=1, max_length=120)
    phone: str
    address: Optional[str] = Field(None, max_length=255)

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Must not be blank")
        return v

    @field_validator("phone")
    @classmethod
    def phone_format(cls, v: Optional[str]) -> Optional[str]:
        return _check_phone(v)


class UserUpdateMeRequest(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=120)
    last_name: Optional[str] = Field(None, min_length=1, max_length=120)
    phone: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def phone_format(cls, v: Optional[str]) -> Optional[str]:
        return _check_phone(v)

    @model_validator(mode="after")
    def at_least_one_field(self):
        if self.first_name is None and self.last_name is None and self.phone is None:
            raise ValueError("At least one field is required")
        return self


class UserUpdateRequest(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=120)
    last_name: Optional[str] = Field(None, min_length=1, max_length=120)
    role: Optional[RoleEnum] = None
    is_active: Optional[bool] = None


class PasswordChangeRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=72)

    @field_validator("new_password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        if not (
            any(c.islower() for c in v)
            and any(c.isupper() for c in v)
            and any(c.isdigit() for c in v)
            and any(c in _SPECIALS for c in v)
        ):
            raise ValueError(
                "Password must contain an uppercase letter, a lowercase letter, a number "
                f"and one of {_SPECIALS}"
            )
        return v


class UserRead(BaseModel):
    user_id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: RoleEnum
    is_active: bool
    profile_status: ProfileStatusEnum
    profile_completed_at: Optional[datetime] = None
    email_verified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
