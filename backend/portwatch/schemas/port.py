"""Pydantic schemas for port reference data and KPI snapshots."""
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel


class PortRead(BaseModel):
    port_id: int
    name: str
    country: str
    lat: float
    lon: float
    geofence_radius_km: Optional[float] = None

    model_config = {"from_attributes": True}


class PortMetricsRead(BaseModel):
    port_id: int
    port_name: str
    as_of_utc: datetime
    window_days: int
    arrivals_7d: int
    departures_7d: int
    unique_vessels_7d: int
    open_calls: int
    avg_dwell_hours_7d: Optional[float] = None


class DailyPortCountsRead(BaseModel):
    day: date
    arrivals: int
    departures: int


class PortDailyCountsRead(BaseModel):
    port_id: int
    port_name: str
    days: list[DailyPortCountsRead]


class BusyPortRead(BaseModel):
    port_id: int
    name: str
    country: str
    arrivals_7d: int
    unique_vessels_7d: int
    avg_dwell_hours_7d: float
