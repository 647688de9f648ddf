"""Port call detection from AIS data.

For each vessel, the recent position batch is tested against the port
geofences and fed through the port state machine:
  - in port:     test only the current port; leaving it closes the call
  - not in port: open a call at the nearest port containing the last sample

The per-vessel cycle (read state -> derive -> write state + PortCall) runs in
one transaction. The state row is read with FOR UPDATE where the backend
supports it and carries an optimistic version counter; a concurrent writer
rolls the cycle back and it is retried from a fresh read.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from portwatch.config import settings
from portwatch.models.ais_point import AISPoint
from portwatch.models.port import Port
from portwatch.models.port_call import PortCall
from portwatch.models.vessel import Vessel
from portwatch.models.vessel_port_state import VesselPortState
from portwatch.modules.geofence_detector import (
    ARRIVAL,
    DEPARTURE,
    PortGeofence,
    PositionSample,
    detect_port_transition,
    find_containing_port,
    iter_port_crossings,
)
from portwatch.modules.port_call_state import (
    ACTION_CLOSE,
    ACTION_OPEN,
    PortState,
    PortStateConflictError,
    derive_port_state_transition,
)

logger = logging.getLogger(__name__)


@dataclass
class PortCallProcessResult:
    vessel_id: int
    samples_considered: int = 0
    actions: list[str] = field(default_factory=list)
    opened_call_ids: list[int] = field(default_factory=list)
    closed_call_ids: list[int] = field(default_factory=list)


def load_port_geofences(db: Session) -> list[PortGeofence]:
    ports = db.query(Port).all()
    return [PortGeofence.from_port(p, settings.DEFAULT_GEOFENCE_RADIUS_KM) for p in ports]


def run_port_call_processing(
    db: Session,
    lookback_hours: Optional[float] = None,
    now: Optional[datetime] = None,
) -> dict:
    """Process port calls for every vessel."""
    vessels = db.query(Vessel).all()
    ports = load_port_geofences(db)
    opened = closed = conflicts = 0

    for vessel in vessels:
        try:
            result = process_port_calls_for_vessel(
                db, vessel.vessel_id, lookback_hours=lookback_hours, now=now, ports=ports,
            )
        except PortStateConflictError:
            logger.error("Giving up on vessel %d after repeated state conflicts", vessel.vessel_id)
            conflicts += 1
            continue
        opened += len(result.opened_call_ids)
        closed += len(result.closed_call_ids)

    logger.info(
        "Port call processing complete: %d opened, %d closed across %d vessels (%d conflicts)",
        opened, closed, len(vessels), conflicts,
    )
    return {
        "vessels_processed": len(vessels),
        "port_calls_opened": opened,
        "port_calls_closed": closed,
        "conflicts": conflicts,
    }


def process_port_calls_for_vessel(
    db: Session,
    vessel_id: int,
    lookback_hours: Optional[float] = None,
    now: Optional[datetime] = None,
    ports: Optional[Sequence[PortGeofence]] = None,
) -> PortCallProcessResult:
    """Run one detection cycle for a vessel and commit it.

    A concurrent writer shows up either as a stale version on update or, for a
    vessel seen for the first time, as a duplicate state row on insert. Both
    roll the cycle back and retry from a fresh read. Raises
    PortStateConflictError after ``PORT_STATE_MAX_RETRIES`` attempts.
    """
    if lookback_hours is None:
        lookback_hours = settings.PORT_CALL_LOOKBACK_HOURS
    if now is None:
        now = datetime.utcnow()
    if ports is None:
        ports = load_port_geofences(db)
    since = now - timedelta(hours=lookback_hours)

    max_attempts = max(1, settings.PORT_STATE_MAX_RETRIES)
    for attempt in range(1, max_attempts + 1):
        try:
            result = _process_once(db, vessel_id, since, now, ports)
            db.commit()
            return result
        except (StaleDataError, IntegrityError) as e:
            db.rollback()
            logger.warning(
                "Port state conflict for vessel %d (attempt %d/%d): %s",
                vessel_id, attempt, max_attempts, type(e).__name__,
            )
        except Exception:
            db.rollback()
            raise
    raise PortStateConflictError(vessel_id)


def _load_state_row(db: Session, vessel_id: int) -> VesselPortState:
    row = (
        db.query(VesselPortState)
        .filter(VesselPortState.vessel_id == vessel_id)
        .with_for_update()
        .first()
    )
    if row is None:
        row = VesselPortState(vessel_id=vessel_id, in_port=False)
        db.add(row)
    return row


def _load_samples(
    db: Session, vessel_id: int, since: datetime, until: datetime, after: Optional[datetime],
) -> list[PositionSample]:
    points = (
        db.query(AISPoint)
        .filter(
            AISPoint.vessel_id == vessel_id,
            AISPoint.timestamp_utc >= since,
            AISPoint.timestamp_utc <= until,
        )
        .order_by(AISPoint.timestamp_utc)
        .all()
    )
    return [
        PositionSample(lat=p.lat, lon=p.lon, timestamp_utc=p.timestamp_utc, vessel_id=vessel_id)
        for p in points
        if after is None or p.timestamp_utc > after
    ]


def _boundary_time(samples: Sequence[PositionSample], port: PortGeofence, kind: str) -> datetime:
    """Latest crossing of ``kind`` in the batch, else the batch start.

    With no crossing the vessel was already across the boundary when the
    batch began, so the first sample is the earliest evidence.
    """
    crossings = [c.timestamp_utc for c in iter_port_crossings(samples, port) if c.kind == kind]
    return crossings[-1] if crossings else samples[0].timestamp_utc


def _process_once(
    db: Session,
    vessel_id: int,
    since: datetime,
    until: datetime,
    ports: Sequence[PortGeofence],
) -> PortCallProcessResult:
    row = _load_state_row(db, vessel_id)
    state = PortState.from_row(row)
    samples = _load_samples(db, vessel_id, since, until, state.last_position_time_utc)

    result = PortCallProcessResult(vessel_id=vessel_id, samples_considered=len(samples))
    if not samples:
        return result

    # An opened call never starts before the cursor or a call closed in this batch
    not_before = state.last_position_time_utc

    if state.in_port:
        current = next((p for p in ports if p.port_id == state.current_port_id), None)
        if current is None:
            # Port removed from reference data: treat as departed
            logger.warning(
                "Vessel %d in unknown port %s, closing call %s",
                vessel_id, state.current_port_id, state.current_port_call_id,
            )
            now_inside, event_time = False, samples[0].timestamp_utc
        else:
            now_inside = detect_port_transition(samples, current).currently_inside
            event_time = _boundary_time(samples, current, DEPARTURE)
        transition = derive_port_state_transition(state, now_inside, state.current_port_id, event_time)
        state = _apply(db, state, transition, event_time, result)
        if transition.action == ACTION_CLOSE:
            not_before = event_time
            # A vessel can leave one geofence straight into a neighbouring one
            ports = [p for p in ports if p.port_id != current.port_id] if current else ports

    if not state.in_port:
        candidate = find_containing_port(samples[-1], ports)
        if candidate is not None:
            now_inside = detect_port_transition(samples, candidate).currently_inside
            event_time = _boundary_time(samples, candidate, ARRIVAL)
            if not_before is not None and event_time < not_before:
                event_time = not_before
            transition = derive_port_state_transition(state, now_inside, candidate.port_id, event_time)
            state = _apply(db, state, transition, event_time, result)
        elif not result.actions:
            transition = derive_port_state_transition(state, False, None, samples[-1].timestamp_utc)
            state = _apply(db, state, transition, samples[-1].timestamp_utc, result)

    state = replace(state, last_position_time_utc=samples[-1].timestamp_utc)
    state.apply_to(row)
    db.flush()
    return result


def _apply(db: Session, state: PortState, transition, event_time: datetime, result: PortCallProcessResult) -> PortState:
    """Perform the PortCall side effect of a transition and return the next state."""
    result.actions.append(transition.action)

    if transition.action == ACTION_OPEN:
        call = PortCall(
            vessel_id=state.vessel_id,
            port_id=transition.next_state.current_port_id,
            arrival_utc=event_time,
        )
        db.add(call)
        db.flush()
        transition = transition.with_call_id(call.port_call_id)
        result.opened_call_ids.append(call.port_call_id)
        logger.info(
            "Port call %d opened: vessel %d arrived at port %d at %s",
            call.port_call_id, state.vessel_id, call.port_id, event_time.isoformat(),
        )

    elif transition.action == ACTION_CLOSE:
        call = db.get(PortCall, state.current_port_call_id) if state.current_port_call_id else None
        if call is None:
            logger.warning(
                "Vessel %d left port %s but open call %s was not found",
                state.vessel_id, state.current_port_id, state.current_port_call_id,
            )
        elif call.departure_utc is None:
            call.departure_utc = max(event_time, call.arrival_utc)
            result.closed_call_ids.append(call.port_call_id)
            logger.info(
                "Port call %d closed: vessel %d departed port %d at %s",
                call.port_call_id, state.vessel_id, call.port_id, call.departure_utc.isoformat(),
            )

    return transition.next_state


def get_port_tracking_status(db: Session) -> dict:
    """Summary of the persisted per-vessel port state."""
    rows = db.query(VesselPortState).all()
    open_calls = db.query(PortCall).filter(PortCall.departure_utc.is_(None)).count()
    return {
        "tracked_vessels": len(rows),
        "vessels_in_port": sum(1 for r in rows if r.in_port),
        "open_calls": open_calls,
        "vessel_states": [
            {
                "vessel_id": r.vessel_id,
                "in_port": bool(r.in_port),
                "port_id": r.current_port_id,
                "port_call_id": r.current_port_call_id,
                "last_position_time_utc": r.last_position_time_utc,
            }
            for r in rows
        ],
    }
