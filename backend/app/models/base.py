"""Shared declarative base and enums for all models."""
from __future__ import annotations

import enum
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class StatusEnum(str, enum.Enum):
    """Administrative status shared by catalogs, port calls and service windows."""
    ACTIVO = "ACTIVO"
    INACTIVO = "INACTIVO"


class RoleEnum(str, enum.Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    SUPERVISOR = "SUPERVISOR"
    GUIA = "GUIA"


class ProfileStatusEnum(str, enum.Enum):
    INCOMPLETE = "INCOMPLETE"
    COMPLETE = "COMPLETE"


class PortCallStatusEnum(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    ARRIVED = "ARRIVED"
    DEPARTED = "DEPARTED"
    CANCELED = "CANCELED"


class PortCallSourceEnum(str, enum.Enum):
    MANUAL = "MANUAL"
    IMPORT = "IMPORT"


class ServiceWindowStatusEnum(str, enum.Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    CANCELED = "CANCELED"


class ShiftStatusEnum(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    NO_SHOW = "NO_SHOW"
    CANCELED = "CANCELED"
