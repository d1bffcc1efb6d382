"""Shared fixtures: a file-backed SQLite database and a fixed clock."""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta

import pytest
from ephemeris.bodies import longitude_to_sign, simple_house
from ephemeris.calculator import PositionCalculator
from ephemeris.fake import DeterministicEphemeris
from verity.config import reset_settings_cache
from verity.database import build_engine, build_session_factory, init_models
from verity.schemas.ephemeris import (
    BirthChart,
    BirthData,
    ChartAngles,
    HouseSystem,
    PlanetPosition,
    TransitSnapshot,
)
from verity.services.chart_cache import AstroDataProvider, ChartCache, InMemoryCacheBackend, TransitCache
from verity.services.entitlements import StaticEntitlements
from verity.services.learning import BatchLearner, InMemoryLearningBuffer
from verity.services.prediction_service import PredictionService
from verity.services.prediction_store import PredictionStore
from verity.services.verification import VerificationEngine

START = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings_cache()
    yield
    reset_settings_cache()


@pytest.fixture
async def engine(tmp_path):
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'verity.db'}")
    await init_models(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def birth_data():
    return BirthData(
        birth_date=date(1990, 7, 14),
        birth_time=time(6, 15),
        latitude=51.5,
        longitude=-0.12,
        timezone="Europe/London",
        house_system=HouseSystem.PLACIDUS,
    )


def position(body: str, longitude: float, speed: float = 1.0, house: int | None = None) -> PlanetPosition:
    sign, degree = longitude_to_sign(longitude)
    return PlanetPosition(
        body=body,
        longitude=longitude,
        speed=speed,
        sign=sign,
        degree=degree,
        retrograde=speed < 0,
        house=house if house is not None else simple_house(longitude),
    )


@pytest.fixture
def make_position():
    return position


@pytest.fixture
def make_snapshot():
    def _make(positions: dict[str, PlanetPosition] | None = None, lunar_phase=None, degraded: bool = False):
        return TransitSnapshot(
            date_context=START.date(),
            julian_day=2461101.0,
            positions=positions or {},
            lunar_phase=lunar_phase,
            degraded=degraded,
            calculated_at=START,
        )

    return _make


@pytest.fixture
def make_chart():
    def _make(positions: dict[str, PlanetPosition] | None = None, fingerprint: str = "fp", degraded: bool = False):
        return BirthChart(
            julian_day=2448086.7,
            birth_datetime_utc=datetime(1990, 7, 14, 5, 15, tzinfo=UTC),
            time_known=True,
            timezone_used="Europe/London",
            positions=positions or {},
            angles=ChartAngles(
                ascendant=0.0,
                midheaven=270.0,
                descendant=180.0,
                imum_coeli=90.0,
                house_cusps=[i * 30.0 for i in range(12)],
                house_system=HouseSystem.EQUAL,
            ),
            fingerprint=fingerprint,
            degraded=degraded,
        )

    return _make


@pytest.fixture
def port():
    return DeterministicEphemeris()


@pytest.fixture
def learner():
    return BatchLearner(InMemoryLearningBuffer(), min_samples=3, adjustment=0.05)


@pytest.fixture
def service(session_factory, port, learner, clock):
    store = PredictionStore(max_pending=3)
    backend = InMemoryCacheBackend()
    astro = AstroDataProvider(PositionCalculator(port), ChartCache(backend), TransitCache(backend))
    return PredictionService(
        session_factory,
        astro,
        store=store,
        verifier=VerificationEngine(store, learner),
        entitlements=StaticEntitlements(premium_users={"premium-user"}),
        clock=clock,
    )
