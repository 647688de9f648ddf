"""Tests for port reference data seeding."""
from portwatch.models.port import Port
from portwatch.modules.port_seed import MAJOR_PORTS, seed_ports


def test_seed_inserts_all_ports(db):
    counts = seed_ports(db)
    assert counts == {"inserted": len(MAJOR_PORTS), "skipped": 0}
    assert db.query(Port).count() == len(MAJOR_PORTS)


def test_seed_is_idempotent(db):
    seed_ports(db)
    counts = seed_ports(db)
    assert counts == {"inserted": 0, "skipped": len(MAJOR_PORTS)}
    assert db.query(Port).count() == len(MAJOR_PORTS)


def test_seeded_ports_have_positive_radius():
    assert all(radius > 0 for *_, radius in MAJOR_PORTS)
    assert len({(name, country) for name, country, *_ in MAJOR_PORTS}) == len(MAJOR_PORTS)
