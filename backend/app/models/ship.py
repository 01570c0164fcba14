"""Ship entity: cruise ships calling at the terminal."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, String, DateTime, ForeignKey, Enum as SAEnum, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base, StatusEnum


class Ship(Base):
    __tablename__ = "ships"

    ship_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    carrier: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    capacity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    # Nullable only so legacy rows can exist until the ship-country backfill repairs them
    country_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("countries.country_id"), nullable=True, index=True
    )
    status: Mapped[StatusEnum] = mapped_column(
        SAEnum(StatusEnum), nullable=False, default=StatusEnum.ACTIVO
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=func.now(), onupdate=func.now()
    )

    country = relationship("Country")
