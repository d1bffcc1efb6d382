"""Tests for the Swiss Ephemeris adapter with swisseph stubbed out."""

from __future__ import annotations

import pytest

import ephemeris.swiss as swiss
from ephemeris.port import EphemerisUnavailable
from verity.schemas.ephemeris import HouseSystem


class FakeSwe:
    FLG_SWIEPH = 2
    FLG_MOSEPH = 4
    FLG_SPEED = 256

    def __init__(self, missing_files: bool = False, broken_bodies: frozenset[int] = frozenset()):
        self.missing_files = missing_files
        self.broken_bodies = broken_bodies
        self.calls: list[tuple[int, int]] = []
        self.house_codes: list[bytes] = []

    def set_ephe_path(self, path):
        self.path = path

    def calc_ut(self, jd, body_id, flags):
        self.calls.append((body_id, flags))
        if body_id in self.broken_bodies:
            raise RuntimeError(f"body {body_id} not available")
        if self.missing_files and flags & self.FLG_SWIEPH:
            raise RuntimeError("SwissEph file 'sepl_18.se1' not found")
        return (10.0 * body_id + 365.0, 0.1, 1.0, 1.0 if body_id != 11 else -0.05, 0.0, 0.0), flags

    def houses_ex(self, jd, lat, lon, hsys):
        self.house_codes.append(hsys)
        cusps = [0.0] + [i * 30.0 for i in range(12)]
        return tuple(cusps), (15.0, 285.0)


@pytest.fixture
def fake_swe(monkeypatch):
    fake = FakeSwe()
    monkeypatch.setattr(swiss, "swe", fake)
    return fake


def test_positions_from_swiss_files(fake_swe):
    batch = swiss.SwissEphemeris().positions(2451545.0, ["sun", "mars", "north_node"])
    assert set(batch.positions) == {"sun", "mars", "north_node"}
    assert batch.positions["sun"].longitude == 5.0
    assert batch.positions["north_node"].speed < 0
    assert all(flags & FakeSwe.FLG_SWIEPH for _, flags in fake_swe.calls)


def test_missing_files_fall_back_to_moshier(monkeypatch):
    fake = FakeSwe(missing_files=True)
    monkeypatch.setattr(swiss, "swe", fake)
    batch = swiss.SwissEphemeris().positions(2451545.0, ["moon"])
    assert batch.positions["moon"].longitude == 15.0
    assert fake.calls[-1][1] & FakeSwe.FLG_MOSEPH


def test_single_body_failure_is_reported(monkeypatch):
    monkeypatch.setattr(swiss, "swe", FakeSwe(broken_bodies=frozenset({15})))
    batch = swiss.SwissEphemeris().positions(2451545.0, ["sun", "chiron"])
    assert "sun" in batch.positions
    assert "chiron" in batch.failures


def test_total_failure_raises(monkeypatch):
    monkeypatch.setattr(swiss, "swe", FakeSwe(broken_bodies=frozenset({0, 1})))
    with pytest.raises(EphemerisUnavailable):
        swiss.SwissEphemeris().positions(2451545.0, ["sun", "moon"])


def test_houses_drop_padding_slot(fake_swe):
    houses = swiss.SwissEphemeris().houses(2451545.0, 51.5, -0.1, HouseSystem.KOCH)
    assert len(houses.cusps) == 12
    assert houses.cusps[0] == 0.0
    assert houses.ascendant == 15.0
    assert houses.midheaven == 285.0
    assert fake_swe.house_codes == [b"K"]


def test_house_failure_raises(monkeypatch, fake_swe):
    def boom(*args):
        raise RuntimeError("polar latitude")

    monkeypatch.setattr(fake_swe, "houses_ex", boom)
    with pytest.raises(EphemerisUnavailable):
        swiss.SwissEphemeris().houses(2451545.0, 89.0, 0.0, HouseSystem.PLACIDUS)
