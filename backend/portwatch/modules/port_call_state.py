"""Per-vessel port state machine.

Turns an "is the vessel inside this port now?" verdict plus the vessel's
persisted ``PortState`` into exactly one action:

  open   — outside -> inside: caller inserts a PortCall and records its id
  close  — inside -> outside: caller sets departure_utc on the open call
  none   — no change; only ``last_position_time_utc`` advances

The function is pure. Restart safety comes from the caller re-reading the
persisted state before every call and writing ``next_state`` in the same
transaction as the PortCall insert/update.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

ACTION_OPEN = "open"
ACTION_CLOSE = "close"
ACTION_NONE = "none"


class PortCallError(Exception):
    """Base class for port call detection errors."""


class UnhandledPortTransitionError(PortCallError):
    """Vessel appears inside a different port while its current call is still open."""

    def __init__(self, vessel_id, current_port_id, candidate_port_id):
        self.vessel_id = vessel_id
        self.current_port_id = current_port_id
        self.candidate_port_id = candidate_port_id
        super().__init__(
            f"Vessel {vessel_id} reported inside port {candidate_port_id} "
            f"while call at port {current_port_id} is open"
        )


class PortStateConflictError(PortCallError):
    """Another writer updated the vessel's port state concurrently. Retryable."""

    def __init__(self, vessel_id):
        self.vessel_id = vessel_id
        super().__init__(f"Concurrent port state update for vessel {vessel_id}")


@dataclass(frozen=True)
class PortState:
    vessel_id: int
    in_port: bool = False
    current_port_id: Optional[int] = None
    current_port_call_id: Optional[int] = None
    last_position_time_utc: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "PortState":
        return cls(
            vessel_id=row.vessel_id,
            in_port=bool(row.in_port),
            current_port_id=row.current_port_id,
            current_port_call_id=row.current_port_call_id,
            last_position_time_utc=row.last_position_time_utc,
        )

    def apply_to(self, row) -> None:
        row.in_port = self.in_port
        row.current_port_id = self.current_port_id
        row.current_port_call_id = self.current_port_call_id
        row.last_position_time_utc = self.last_position_time_utc


@dataclass(frozen=True)
class PortStateTransition:
    action: str
    next_state: PortState

    def with_call_id(self, port_call_id: int) -> "PortStateTransition":
        """Attach the id of the PortCall the caller inserted for an ``open``."""
        return replace(self, next_state=replace(self.next_state, current_port_call_id=port_call_id))


def derive_port_state_transition(
    state: PortState,
    now_inside: bool,
    candidate_port_id: Optional[int],
    timestamp: datetime,
) -> PortStateTransition:
    """Derive the action and next state for one observation.

    On ``open`` the returned state has ``current_port_call_id=None``; the
    storage layer mints the id and the caller attaches it with
    :meth:`PortStateTransition.with_call_id` before persisting.

    Raises UnhandledPortTransitionError when the vessel is in port and
    reported inside a *different* port — a hand-off between overlapping
    geofences has no defined outcome.
    """
    if not state.in_port and now_inside:
        return PortStateTransition(
            action=ACTION_OPEN,
            next_state=PortState(
                vessel_id=state.vessel_id,
                in_port=True,
                current_port_id=candidate_port_id,
                current_port_call_id=None,
                last_position_time_utc=timestamp,
            ),
        )

    if state.in_port and now_inside:
        if state.current_port_id != candidate_port_id:
            raise UnhandledPortTransitionError(state.vessel_id, state.current_port_id, candidate_port_id)
        return PortStateTransition(
            action=ACTION_NONE,
            next_state=replace(state, last_position_time_utc=timestamp),
        )

    if state.in_port and not now_inside:
        return PortStateTransition(
            action=ACTION_CLOSE,
            next_state=PortState(vessel_id=state.vessel_id, last_position_time_utc=timestamp),
        )

    # Outside and still outside
    return PortStateTransition(
        action=ACTION_NONE,
        next_state=replace(state, last_position_time_utc=timestamp),
    )
