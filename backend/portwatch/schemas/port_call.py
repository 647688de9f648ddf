"""Pydantic schemas for port call and port state responses."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class PortCallRead(BaseModel):
    port_call_id: int
    vessel_id: int
    port_id: int
    port_name: Optional[str] = None
    arrival_utc: datetime
    departure_utc: Optional[datetime] = None
    source: Optional[str] = None


class PortCallList(BaseModel):
    vessel_id: int
    items: list[PortCallRead]
    total: int


class VesselPortStateRead(BaseModel):
    vessel_id: int
    in_port: bool
    current_port_id: Optional[int] = None
    current_port_call_id: Optional[int] = None
    last_position_time_utc: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PortCallDetectionResult(BaseModel):
    vessels_processed: int
    port_calls_opened: int
    port_calls_closed: int
    conflicts: int = 0
