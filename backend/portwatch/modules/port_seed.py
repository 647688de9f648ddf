"""Seed the Port table with major ports and their geofence radii.

Radii are rough harbour/anchorage extents around the centroid; large
anchorage complexes get wider fences so vessels waiting at anchor count as
in port.

Usage:
    from portwatch.database import SessionLocal
    from portwatch.modules.port_seed import seed_ports
    db = SessionLocal()
    seed_ports(db)
"""
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

# (name, country, lat, lon, geofence_radius_km)
MAJOR_PORTS: list[tuple[str, str, float, float, float]] = [
    # ── North-west Europe ─────────────────────────────────────────────────────
    ("Rotterdam", "NL", 51.94, 4.14, 15.0),
    ("Antwerp", "BE", 51.23, 4.40, 12.0),
    ("Hamburg", "DE", 53.55, 10.00, 10.0),
    ("Amsterdam", "NL", 52.37, 4.92, 8.0),
    ("Le Havre", "FR", 49.48, 0.11, 8.0),
    ("Felixstowe", "GB", 51.95, 1.33, 6.0),
    # ── Mediterranean ─────────────────────────────────────────────────────────
    ("Algeciras", "ES", 36.13, -5.44, 10.0),
    ("Marseille", "FR", 43.30, 5.37, 10.0),
    ("Genoa", "IT", 44.41, 8.93, 6.0),
    ("Piraeus", "GR", 37.94, 23.64, 8.0),
    # ── Middle East ───────────────────────────────────────────────────────────
    ("Fujairah", "AE", 25.12, 56.36, 20.0),
    ("Jebel Ali", "AE", 25.01, 55.06, 10.0),
    ("Ras Tanura", "SA", 26.64, 50.16, 12.0),
    # ── Asia ──────────────────────────────────────────────────────────────────
    ("Singapore", "SG", 1.26, 103.84, 20.0),
    ("Shanghai", "CN", 31.23, 121.50, 20.0),
    ("Ningbo-Zhoushan", "CN", 29.87, 121.55, 20.0),
    ("Busan", "KR", 35.10, 129.04, 10.0),
    ("Jamnagar", "IN", 21.85, 69.08, 15.0),
    # ── Americas ──────────────────────────────────────────────────────────────
    ("Houston", "US", 29.73, -95.27, 15.0),
    ("Corpus Christi", "US", 27.81, -97.40, 10.0),
    ("Santos", "BR", -23.96, -46.30, 10.0),
]


def seed_ports(db: Session) -> dict:
    """Insert MAJOR_PORTS, skipping names already present. Commits."""
    from portwatch.models.port import Port

    inserted = 0
    skipped = 0
    for name, country, lat, lon, radius_km in MAJOR_PORTS:
        existing = db.query(Port).filter(Port.name == name, Port.country == country).first()
        if existing:
            skipped += 1
            continue
        db.add(Port(
            name=name,
            country=country,
            lat=lat,
            lon=lon,
            geofence_radius_km=radius_km,
        ))
        inserted += 1

    db.commit()
    logger.info("seed_ports: inserted=%d skipped=%d", inserted, skipped)
    return {"inserted": inserted, "skipped": skipped}
