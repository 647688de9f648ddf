"""PortWatch — geofence port call detection and rolling port KPIs."""

__version__ = "0.1.0"
