"""Import all models to register them with SQLAlchemy metadata."""
from app.models.base import Base
from app.models.country import Country
from app.models.ship import Ship
from app.models.user import User, Supervisor, Guide
from app.models.port_call import PortCall
from app.models.service_window import ServiceWindow
from app.models.shift import Shift

__all__ = [
    "Base",
    "Country",
    "Ship",
    "User",
    "Supervisor",
    "Guide",
    "PortCall",
    "ServiceWindow",
    "Shift",
]
