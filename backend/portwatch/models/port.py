"""Port entity — circular geofences used for port call detection."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, String, Float, DateTime, CheckConstraint, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
from portwatch.models.base import Base


class Port(Base):
    __tablename__ = "ports"
    __table_args__ = (
        UniqueConstraint("name", "country", name="uq_ports_name_country"),
        CheckConstraint("geofence_radius_km IS NULL OR geofence_radius_km > 0", name="ck_ports_radius_positive"),
    )

    port_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    country: Mapped[str] = mapped_column(String(10), nullable=False)
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lon: Mapped[float] = mapped_column(Float, nullable=False)
    # NULL falls back to settings.DEFAULT_GEOFENCE_RADIUS_KM
    geofence_radius_km: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
