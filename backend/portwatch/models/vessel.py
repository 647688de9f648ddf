"""Vessel entity — identity of a tracked mobile entity."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from portwatch.models.base import Base


class Vessel(Base):
    __tablename__ = "vessels"

    vessel_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mmsi: Mapped[str] = mapped_column(String(9), unique=True, nullable=False, index=True)
    imo: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    ais_points: Mapped[list] = relationship("AISPoint", back_populates="vessel", cascade="all, delete-orphan")
    port_calls: Mapped[list] = relationship("PortCall", back_populates="vessel", cascade="all, delete-orphan")
