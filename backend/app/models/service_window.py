"""ServiceWindow entity (atencion): a bounded window of guided visits during a port call.

There is no natural business key; the logical identity used by the seed
reconciliation is (port_call_id, start_utc, end_utc), enforced here as a
unique constraint.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Integer, Text, DateTime, ForeignKey, Enum as SAEnum, UniqueConstraint, CheckConstraint, func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base, StatusEnum, ServiceWindowStatusEnum


class ServiceWindow(Base):
    __tablename__ = "service_windows"
    __table_args__ = (
        UniqueConstraint("port_call_id", "start_utc", "end_utc", name="uq_service_window_identity"),
        CheckConstraint("total_slots >= 0", name="ck_service_window_total_slots"),
    )

    window_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    port_call_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("port_calls.port_call_id"), nullable=False, index=True
    )
    supervisor_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("supervisors.supervisor_id"), nullable=False, index=True
    )
    start_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    total_slots: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[StatusEnum] = mapped_column(
        SAEnum(StatusEnum), nullable=False, default=StatusEnum.ACTIVO
    )
    operational_status: Mapped[ServiceWindowStatusEnum] = mapped_column(
        SAEnum(ServiceWindowStatusEnum), nullable=False, default=ServiceWindowStatusEnum.OPEN
    )
    created_by_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.user_id"), nullable=True
    )
    canceled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancel_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    canceled_by_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.user_id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=func.now(), onupdate=func.now()
    )

    port_call = relationship("PortCall", back_populates="service_windows")
    supervisor = relationship("Supervisor")
    shifts: Mapped[list] = relationship(
        "Shift", back_populates="service_window", order_by="Shift.number",
        cascade="all, delete-orphan",
    )
