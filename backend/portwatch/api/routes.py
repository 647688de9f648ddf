from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from portwatch.config import settings
from portwatch.database import get_db
from portwatch.schemas.error import ErrorResponse
from portwatch.schemas.port import (
    BusyPortRead,
    DailyPortCountsRead,
    PortDailyCountsRead,
    PortMetricsRead,
    PortRead,
)
from portwatch.schemas.port_call import (
    PortCallDetectionResult,
    PortCallList,
    PortCallRead,
    VesselPortStateRead,
)

logger = logging.getLogger(__name__)

router = APIRouter()

_NOT_FOUND = {404: {"model": ErrorResponse}}


def _window_end(as_of: Optional[datetime]) -> datetime:
    """Naive UTC window end; aware values are converted, None means now."""
    if as_of is None:
        return datetime.utcnow()
    if as_of.tzinfo is not None:
        return as_of.astimezone(timezone.utc).replace(tzinfo=None)
    return as_of


# ---------------------------------------------------------------------------
# Ports
# ---------------------------------------------------------------------------

@router.get("/ports", response_model=list[PortRead], tags=["ports"])
def list_ports(
    limit: int = Query(100, ge=1),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    """List port geofences."""
    from portwatch.models.port import Port

    limit = min(limit, settings.MAX_QUERY_LIMIT)
    return db.query(Port).order_by(Port.name).offset(offset).limit(limit).all()


@router.get("/ports/{port_id}/metrics", response_model=PortMetricsRead, responses=_NOT_FOUND, tags=["ports"])
def get_port_metrics(
    port_id: int,
    as_of: Optional[datetime] = Query(None, description="Window end (UTC); defaults to now"),
    db: Session = Depends(get_db),
):
    """Rolling-window arrivals, departures, unique vessels, open calls and dwell for a port."""
    from portwatch.models.port import Port
    from portwatch.modules.port_metrics import get_port_metrics_7d

    port = db.query(Port).filter(Port.port_id == port_id).first()
    if not port:
        raise HTTPException(status_code=404, detail="Port not found")

    now = _window_end(as_of)
    metrics = get_port_metrics_7d(db, port_id, now=now)
    return PortMetricsRead(
        port_id=port_id,
        port_name=port.name,
        as_of_utc=now,
        window_days=settings.PORT_METRICS_WINDOW_DAYS,
        arrivals_7d=metrics.arrivals_7d,
        departures_7d=metrics.departures_7d,
        unique_vessels_7d=metrics.unique_vessels_7d,
        open_calls=metrics.open_calls,
        avg_dwell_hours_7d=(
            round(metrics.avg_dwell_hours_7d, 2) if metrics.avg_dwell_hours_7d is not None else None
        ),
    )


@router.get("/ports/busiest", response_model=list[BusyPortRead], tags=["ports"])
def get_busiest_ports(
    limit: int = Query(20, ge=1),
    as_of: Optional[datetime] = Query(None, description="Window end (UTC); defaults to now"),
    db: Session = Depends(get_db),
):
    """Ports ranked by arrivals over the rolling window."""
    from portwatch.modules.port_metrics import get_top_busy_ports

    limit = min(limit, settings.MAX_QUERY_LIMIT)
    ranked = get_top_busy_ports(db, limit=limit, now=_window_end(as_of))
    return [
        BusyPortRead(
            port_id=b.port_id,
            name=b.name,
            country=b.country,
            arrivals_7d=b.arrivals_7d,
            unique_vessels_7d=b.unique_vessels_7d,
            avg_dwell_hours_7d=round(b.avg_dwell_hours_7d, 2),
        )
        for b in ranked
    ]


@router.get("/ports/{port_id}/daily", response_model=PortDailyCountsRead, responses=_NOT_FOUND, tags=["ports"])
def get_port_daily_counts(
    port_id: int,
    as_of: Optional[datetime] = Query(None, description="Last day of the series (UTC); defaults to today"),
    db: Session = Depends(get_db),
):
    """Arrivals and departures per UTC day for the trailing window."""
    from portwatch.models.port import Port
    from portwatch.modules.port_metrics import get_daily_arrivals_departures

    port = db.query(Port).filter(Port.port_id == port_id).first()
    if not port:
        raise HTTPException(status_code=404, detail="Port not found")

    series = get_daily_arrivals_departures(db, port_id, now=_window_end(as_of))
    return PortDailyCountsRead(
        port_id=port_id,
        port_name=port.name,
        days=[DailyPortCountsRead(day=d.day, arrivals=d.arrivals, departures=d.departures) for d in series],
    )


# ---------------------------------------------------------------------------
# Port calls
# ---------------------------------------------------------------------------

@router.get("/port-calls/{vessel_id}", response_model=PortCallList, responses=_NOT_FOUND, tags=["port-calls"])
def get_port_calls(vessel_id: int, db: Session = Depends(get_db)):
    """List port calls for a vessel, newest arrival first."""
    from portwatch.models.port_call import PortCall
    from portwatch.models.port import Port
    from portwatch.models.vessel import Vessel

    vessel = db.query(Vessel).filter(Vessel.vessel_id == vessel_id).first()
    if not vessel:
        raise HTTPException(status_code=404, detail="Vessel not found")

    port_calls = db.query(PortCall).filter(PortCall.vessel_id == vessel_id).order_by(PortCall.arrival_utc.desc()).all()

    port_names: dict[int, Optional[str]] = {}
    items = []
    for pc in port_calls:
        if pc.port_id not in port_names:
            port = db.query(Port).filter(Port.port_id == pc.port_id).first()
            port_names[pc.port_id] = port.name if port else None
        items.append(PortCallRead(
            port_call_id=pc.port_call_id,
            vessel_id=pc.vessel_id,
            port_id=pc.port_id,
            port_name=port_names[pc.port_id],
            arrival_utc=pc.arrival_utc,
            departure_utc=pc.departure_utc,
            source=pc.source,
        ))

    return PortCallList(vessel_id=vessel_id, items=items, total=len(items))


@router.post("/port-calls/detect", response_model=PortCallDetectionResult, tags=["port-calls"])
def detect_port_calls(
    vessel_id: Optional[int] = Query(None, description="Limit detection to one vessel"),
    lookback_hours: Optional[float] = Query(None, gt=0),
    db: Session = Depends(get_db),
):
    """Run port call detection over recent AIS positions."""
    from portwatch.models.vessel import Vessel
    from portwatch.modules.port_detector import process_port_calls_for_vessel, run_port_call_processing

    if vessel_id is None:
        return run_port_call_processing(db, lookback_hours=lookback_hours)

    vessel = db.query(Vessel).filter(Vessel.vessel_id == vessel_id).first()
    if not vessel:
        raise HTTPException(status_code=404, detail="Vessel not found")
    result = process_port_calls_for_vessel(db, vessel_id, lookback_hours=lookback_hours)
    return PortCallDetectionResult(
        vessels_processed=1,
        port_calls_opened=len(result.opened_call_ids),
        port_calls_closed=len(result.closed_call_ids),
    )


@router.get(
    "/vessels/{vessel_id}/port-state",
    response_model=VesselPortStateRead,
    responses=_NOT_FOUND,
    tags=["port-calls"],
)
def get_vessel_port_state(vessel_id: int, db: Session = Depends(get_db)):
    """Current persisted port state for a vessel."""
    from portwatch.models.vessel import Vessel
    from portwatch.models.vessel_port_state import VesselPortState

    vessel = db.query(Vessel).filter(Vessel.vessel_id == vessel_id).first()
    if not vessel:
        raise HTTPException(status_code=404, detail="Vessel not found")

    row = db.query(VesselPortState).filter(VesselPortState.vessel_id == vessel_id).first()
    if row is None:
        # Never observed: outside, no cursor yet
        return VesselPortStateRead(vessel_id=vessel_id, in_port=False)
    return VesselPortStateRead.model_validate(row)
