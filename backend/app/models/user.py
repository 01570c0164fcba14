"""User account plus the 1:1 role profiles (Supervisor, Guide) keyed by user id."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, String, Boolean, DateTime, ForeignKey, Enum as SAEnum, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base, RoleEnum, ProfileStatusEnum


class User(Base):
    __tablename__ = "users"

    user_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    role: Mapped[RoleEnum] = mapped_column(SAEnum(RoleEnum), nullable=False, default=RoleEnum.GUIA)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    profile_status: Mapped[ProfileStatusEnum] = mapped_column(
        SAEnum(ProfileStatusEnum), nullable=False, default=ProfileStatusEnum.INCOMPLETE
    )
    profile_completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    email_verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=func.now(), onupdate=func.now()
    )

    supervisor = relationship("Supervisor", back_populates="user", uselist=False)
    guide = relationship("Guide", back_populates="user", uselist=False)


class Supervisor(Base):
    __tablename__ = "supervisors"

    supervisor_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.user_id"), unique=True, nullable=False, index=True
    )
    phone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)

    user = relationship("User", back_populates="supervisor")


class Guide(Base):
    __tablename__ = "guides"

    guide_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.user_id"), unique=True, nullable=False, index=True
    )
    phone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    user = relationship("User", back_populates="guide")
