"""PortCall entity (recalada): a scheduled or actual visit of a ship to the terminal."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, String, Text, DateTime, ForeignKey, Enum as SAEnum, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base, StatusEnum, PortCallStatusEnum, PortCallSourceEnum


class PortCall(Base):
    __tablename__ = "port_calls"

    port_call_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(40), unique=True, nullable=False, index=True)
    ship_id: Mapped[int] = mapped_column(Integer, ForeignKey("ships.ship_id"), nullable=False, index=True)
    origin_country_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("countries.country_id"), nullable=False, index=True
    )
    supervisor_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("supervisors.supervisor_id"), nullable=False, index=True
    )
    scheduled_arrival_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    scheduled_departure_utc: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    arrived_at_utc: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    departed_at_utc: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[StatusEnum] = mapped_column(
        SAEnum(StatusEnum), nullable=False, default=StatusEnum.ACTIVO
    )
    operational_status: Mapped[PortCallStatusEnum] = mapped_column(
        SAEnum(PortCallStatusEnum), nullable=False, default=PortCallStatusEnum.SCHEDULED, index=True
    )
    terminal: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    berth: Mapped[Optional[str]] = mapped_column(String(60), nullable=True)
    estimated_passengers: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    estimated_crew: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source: Mapped[PortCallSourceEnum] = mapped_column(
        SAEnum(PortCallSourceEnum), nullable=False, default=PortCallSourceEnum.MANUAL
    )
    canceled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancel_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=func.now(), onupdate=func.now()
    )

    ship = relationship("Ship")
    origin_country = relationship("Country")
    supervisor = relationship("Supervisor")
    service_windows: Mapped[list] = relationship("ServiceWindow", back_populates="port_call")
