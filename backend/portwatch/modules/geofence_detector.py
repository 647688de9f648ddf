"""Geofence boundary-crossing detection over a batch of position samples.

Stateless: a batch is judged only against itself. Whether a crossing should
open or close a port call is decided by ``port_call_state`` using the
vessel's persisted state.

Preconditions (not validated): the batch is non-empty and sorted ascending
by ``timestamp_utc``.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Iterator, Optional, Sequence

from portwatch.utils.geo import haversine_km, is_in_port

ARRIVAL = "arrival"
DEPARTURE = "departure"


@dataclass(frozen=True)
class PositionSample:
    lat: float
    lon: float
    timestamp_utc: datetime
    vessel_id: Optional[int] = None


@dataclass(frozen=True)
class PortGeofence:
    """Immutable snapshot of a port's geofence."""
    port_id: int
    name: str
    lat: float
    lon: float
    geofence_radius_km: float

    @classmethod
    def from_port(cls, port, default_radius_km: float) -> "PortGeofence":
        radius = port.geofence_radius_km if port.geofence_radius_km else default_radius_km
        return cls(
            port_id=port.port_id,
            name=port.name,
            lat=port.lat,
            lon=port.lon,
            geofence_radius_km=radius,
        )


@dataclass(frozen=True)
class PortCrossing:
    kind: str  # ARRIVAL or DEPARTURE
    timestamp_utc: datetime
    index: int


@dataclass(frozen=True)
class PortTransition:
    currently_inside: bool
    arrival_at: Optional[datetime] = None
    departure_at: Optional[datetime] = None


def _inside(sample: PositionSample, port: PortGeofence) -> bool:
    return is_in_port(sample.lat, sample.lon, port)


def iter_port_crossings(
    samples: Sequence[PositionSample], port: PortGeofence
) -> Iterator[PortCrossing]:
    """Yield every inside/outside change in the batch, in order."""
    if not samples:
        return
    last_inside = _inside(samples[0], port)
    for i in range(1, len(samples)):
        inside = _inside(samples[i], port)
        if inside != last_inside:
            kind = ARRIVAL if inside else DEPARTURE
            yield PortCrossing(kind=kind, timestamp_utc=samples[i].timestamp_utc, index=i)
        last_inside = inside


def detect_port_transition(
    samples: Sequence[PositionSample], port: PortGeofence
) -> PortTransition:
    """Report the first boundary crossing in the batch plus the final status.

    Only one of ``arrival_at`` / ``departure_at`` is ever set. When the batch
    oscillates (outside -> inside -> outside) the reported crossing is the
    first one while ``currently_inside`` reflects the last sample, so the two
    can disagree.
    """
    currently_inside = _inside(samples[-1], port)
    first = next(iter_port_crossings(samples, port), None)
    if first is None:
        return PortTransition(currently_inside=currently_inside)
    if first.kind == ARRIVAL:
        return PortTransition(currently_inside=currently_inside, arrival_at=first.timestamp_utc)
    return PortTransition(currently_inside=currently_inside, departure_at=first.timestamp_utc)


def find_containing_port(
    sample: PositionSample, ports: Iterable[PortGeofence]
) -> Optional[PortGeofence]:
    """Return the port whose geofence contains the sample, nearest center first."""
    best: Optional[PortGeofence] = None
    best_dist = float("inf")
    for port in ports:
        dist = haversine_km(sample.lat, sample.lon, port.lat, port.lon)
        if dist <= port.geofence_radius_km and dist < best_dist:
            best = port
            best_dist = dist
    return best
