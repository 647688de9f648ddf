"""AISPoint entity — individual position reports for a vessel."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Integer, Float, DateTime, ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from portwatch.models.base import Base


class AISPoint(Base):
    __tablename__ = "ais_points"
    __table_args__ = (
        CheckConstraint("lat >= -90 AND lat <= 90", name="ck_ais_lat_bounds"),
        CheckConstraint("lon >= -180 AND lon <= 180", name="ck_ais_lon_bounds"),
        Index("ix_ais_vessel_ts", "vessel_id", "timestamp_utc"),
    )

    ais_point_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vessel_id: Mapped[int] = mapped_column(Integer, ForeignKey("vessels.vessel_id"), nullable=False, index=True)
    timestamp_utc: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lon: Mapped[float] = mapped_column(Float, nullable=False)

    vessel: Mapped["Vessel"] = relationship("Vessel", back_populates="ais_points")
