"""VesselPortState — persisted per-vessel cursor for port call detection.

One row per vessel. The row is the source of truth for whether a vessel is
currently in port, so replaying a batch after a restart never opens a second
call. ``version`` is an optimistic lock: a concurrent writer that read the
same version fails its UPDATE with ``StaleDataError``.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Integer, DateTime, ForeignKey, CheckConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
from portwatch.models.base import Base


class VesselPortState(Base):
    __tablename__ = "vessel_port_state"
    __table_args__ = (
        CheckConstraint(
            "(in_port AND current_port_id IS NOT NULL AND current_port_call_id IS NOT NULL)"
            " OR (NOT in_port AND current_port_id IS NULL AND current_port_call_id IS NULL)",
            name="ck_vessel_port_state_in_port",
        ),
    )

    vessel_id: Mapped[int] = mapped_column(Integer, ForeignKey("vessels.vessel_id"), primary_key=True)
    in_port: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    current_port_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("ports.port_id"), nullable=True, index=True
    )
    current_port_call_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("port_calls.port_call_id"), nullable=True
    )
    last_position_time_utc: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}
