"""Shared geodesic distance utilities.

Spherical-Earth haversine used by the geofence detector and the
containing-port lookup.
"""
from __future__ import annotations

import math

_EARTH_RADIUS_KM: float = 6371.0  # Earth mean radius in kilometres


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres between two WGS-84 coordinates."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlam = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    return _EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def is_in_port(lat: float, lon: float, port) -> bool:
    """True when (lat, lon) lies within ``port.geofence_radius_km`` of the port center.

    ``port`` is anything with ``lat``, ``lon`` and ``geofence_radius_km``
    attributes. The boundary itself counts as inside.
    """
    return haversine_km(lat, lon, port.lat, port.lon) <= port.geofence_radius_km
