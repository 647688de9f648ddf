"""PortCall entity — one continuous stay of a vessel inside a port geofence."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from portwatch.models.base import Base, PortCallSourceEnum


class PortCall(Base):
    __tablename__ = "port_calls"
    __table_args__ = (
        Index("ix_port_calls_port_arrival", "port_id", "arrival_utc"),
    )

    port_call_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vessel_id: Mapped[int] = mapped_column(Integer, ForeignKey("vessels.vessel_id"), nullable=False, index=True)
    port_id: Mapped[int] = mapped_column(Integer, ForeignKey("ports.port_id"), nullable=False, index=True)
    arrival_utc: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    # NULL while the call is still open
    departure_utc: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)
    source: Mapped[str] = mapped_column(String, default=PortCallSourceEnum.GEOFENCE.value, nullable=False)

    vessel: Mapped["Vessel"] = relationship("Vessel", back_populates="port_calls")
