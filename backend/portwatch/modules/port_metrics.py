"""Rolling-window port KPIs computed from port call records.

The window is ``[now - window_days, now]`` (both ends inclusive):
  arrivals_7d        calls whose arrival falls in the window
  departures_7d      calls whose departure falls in the window, wherever the arrival is
  unique_vessels_7d  distinct vessels among the arrivals population
  open_calls         calls with no departure, not restricted to the window
  avg_dwell_hours_7d mean dwell of the arrivals population, open calls measured to ``now``;
                     None when there are no arrivals

Also per-UTC-day arrival/departure counts over the trailing days, and a
ranking of the busiest ports by arrivals in the window.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Sequence

from sqlalchemy import or_
from sqlalchemy.orm import Session

from portwatch.config import settings

logger = logging.getLogger(__name__)

WINDOW_DAYS = 7


@dataclass(frozen=True)
class PortMetrics7d:
    arrivals_7d: int
    departures_7d: int
    unique_vessels_7d: int
    open_calls: int
    avg_dwell_hours_7d: Optional[float]


@dataclass(frozen=True)
class DailyPortCounts:
    day: date
    arrivals: int
    departures: int


@dataclass(frozen=True)
class BusyPort:
    port_id: int
    name: str
    country: str
    arrivals_7d: int
    unique_vessels_7d: int
    avg_dwell_hours_7d: float


def dwell_hours(call, now: datetime) -> float:
    """Hours between arrival and departure (or ``now`` if still open), never negative."""
    end = call.departure_utc if call.departure_utc is not None else now
    return max(0.0, (end - call.arrival_utc).total_seconds() / 3600)


def compute_port_metrics_7d(
    calls: Iterable,
    now: datetime,
    window_days: int = WINDOW_DAYS,
) -> PortMetrics7d:
    """Compute KPIs for one port's calls.

    ``calls`` items need ``vessel_id``, ``arrival_utc`` and ``departure_utc``
    attributes (PortCall rows or any lookalike).
    """
    window_start = now - timedelta(days=window_days)

    def _in_window(ts: Optional[datetime]) -> bool:
        return ts is not None and window_start <= ts <= now

    arrivals = []
    departures = 0
    open_calls = 0
    for call in calls:
        if _in_window(call.arrival_utc):
            arrivals.append(call)
        if _in_window(call.departure_utc):
            departures += 1
        if call.departure_utc is None:
            open_calls += 1

    avg_dwell = None
    if arrivals:
        avg_dwell = sum(dwell_hours(c, now) for c in arrivals) / len(arrivals)

    return PortMetrics7d(
        arrivals_7d=len(arrivals),
        departures_7d=departures,
        unique_vessels_7d=len({c.vessel_id for c in arrivals}),
        open_calls=open_calls,
        avg_dwell_hours_7d=avg_dwell,
    )


def get_port_metrics_7d(
    db: Session,
    port_id: int,
    now: Optional[datetime] = None,
    window_days: Optional[int] = None,
) -> PortMetrics7d:
    """Load the calls that can affect the window for ``port_id`` and compute KPIs."""
    from portwatch.models.port_call import PortCall

    if now is None:
        now = datetime.utcnow()
    if window_days is None:
        window_days = settings.PORT_METRICS_WINDOW_DAYS
    window_start = now - timedelta(days=window_days)

    calls = (
        db.query(PortCall)
        .filter(
            PortCall.port_id == port_id,
            or_(
                PortCall.arrival_utc >= window_start,
                PortCall.departure_utc >= window_start,
                PortCall.departure_utc.is_(None),
            ),
        )
        .all()
    )
    metrics = compute_port_metrics_7d(calls, now, window_days=window_days)
    logger.debug(
        "Port %d metrics: arrivals=%d departures=%d open=%d",
        port_id, metrics.arrivals_7d, metrics.departures_7d, metrics.open_calls,
    )
    return metrics


def compute_daily_arrivals_departures(
    calls: Iterable,
    now: datetime,
    days: int = WINDOW_DAYS,
) -> list[DailyPortCounts]:
    """Arrivals and departures per UTC calendar day, oldest first.

    Covers ``days`` whole days ending with the day containing ``now``; every
    day is present even when it has no events. A day is ``[00:00, 24:00)``.
    """
    first_day = now.date() - timedelta(days=days - 1)
    arrivals: dict[date, int] = defaultdict(int)
    departures: dict[date, int] = defaultdict(int)
    for call in calls:
        arrivals[call.arrival_utc.date()] += 1
        if call.departure_utc is not None:
            departures[call.departure_utc.date()] += 1

    return [
        DailyPortCounts(day=d, arrivals=arrivals[d], departures=departures[d])
        for d in (first_day + timedelta(days=i) for i in range(days))
    ]


def get_daily_arrivals_departures(
    db: Session,
    port_id: int,
    now: Optional[datetime] = None,
    days: Optional[int] = None,
) -> list[DailyPortCounts]:
    from portwatch.models.port_call import PortCall

    if now is None:
        now = datetime.utcnow()
    if days is None:
        days = settings.PORT_METRICS_WINDOW_DAYS
    start = datetime.combine(now.date() - timedelta(days=days - 1), datetime.min.time())

    calls = (
        db.query(PortCall)
        .filter(
            PortCall.port_id == port_id,
            or_(PortCall.arrival_utc >= start, PortCall.departure_utc >= start),
        )
        .all()
    )
    return compute_daily_arrivals_departures(calls, now, days=days)


def rank_busy_ports(
    ports: Sequence,
    calls: Iterable,
    now: datetime,
    limit: int = 20,
    window_days: int = WINDOW_DAYS,
) -> list[BusyPort]:
    """Ports with at least one arrival in the window, busiest first.

    Ties on arrivals are broken by port name.
    """
    by_port: dict[int, list] = defaultdict(list)
    for call in calls:
        by_port[call.port_id].append(call)

    ranked = []
    for port in ports:
        metrics = compute_port_metrics_7d(by_port.get(port.port_id, []), now, window_days=window_days)
        if not metrics.arrivals_7d:
            continue
        ranked.append(BusyPort(
            port_id=port.port_id,
            name=port.name,
            country=port.country,
            arrivals_7d=metrics.arrivals_7d,
            unique_vessels_7d=metrics.unique_vessels_7d,
            avg_dwell_hours_7d=metrics.avg_dwell_hours_7d,
        ))
    ranked.sort(key=lambda b: (-b.arrivals_7d, b.name))
    return ranked[:limit]


def get_top_busy_ports(
    db: Session,
    limit: int = 20,
    now: Optional[datetime] = None,
    window_days: Optional[int] = None,
) -> list[BusyPort]:
    """Busiest ports by arrivals over the rolling window."""
    from portwatch.models.port import Port
    from portwatch.models.port_call import PortCall

    if now is None:
        now = datetime.utcnow()
    if window_days is None:
        window_days = settings.PORT_METRICS_WINDOW_DAYS
    window_start = now - timedelta(days=window_days)

    calls = (
        db.query(PortCall)
        .filter(PortCall.arrival_utc >= window_start, PortCall.arrival_utc <= now)
        .all()
    )
    port_ids = {c.port_id for c in calls}
    if not port_ids:
        return []
    ports = db.query(Port).filter(Port.port_id.in_(port_ids)).all()
    return rank_busy_ports(ports, calls, now, limit=limit, window_days=window_days)
