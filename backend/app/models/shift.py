"""Shift entity (turno): one numbered, assignable slot of guide coverage in a service window."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, Text, DateTime, ForeignKey, Enum as SAEnum, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base, ShiftStatusEnum


class Shift(Base):
    __tablename__ = "shifts"
    __table_args__ = (
        UniqueConstraint("window_id", "number", name="uq_shift_window_number"),
        # A guide holds at most one slot per window (NULL guide_id rows are exempt)
        UniqueConstraint("window_id", "guide_id", name="uq_shift_window_guide"),
    )

    shift_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    window_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("service_windows.window_id"), nullable=False, index=True
    )
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    guide_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("guides.guide_id"), nullable=True, index=True
    )
    status: Mapped[ShiftStatusEnum] = mapped_column(
        SAEnum(ShiftStatusEnum), nullable=False, default=ShiftStatusEnum.AVAILABLE, index=True
    )
    start_utc: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    end_utc: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    check_in_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    check_out_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    canceled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancel_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    canceled_by_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.user_id"), nullable=True
    )
    created_by_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.user_id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=func.now(), onupdate=func.now()
    )

    service_window = relationship("ServiceWindow", back_populates="shifts")
    guide = relationship("Guide")
