"""Import all models to register them with SQLAlchemy metadata."""
from portwatch.models.base import Base
from portwatch.models.vessel import Vessel
from portwatch.models.ais_point import AISPoint
from portwatch.models.port import Port
from portwatch.models.port_call import PortCall
from portwatch.models.vessel_port_state import VesselPortState

__all__ = [
    "Base",
    "Vessel",
    "AISPoint",
    "Port",
    "PortCall",
    "VesselPortState",
]
