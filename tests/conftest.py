"""Integration test configuration."""

from datetime import UTC, date, datetime, time, timedelta

import pytest
from verity.config import Settings
from verity.database import build_engine, build_session_factory, init_models
from verity.schemas.ephemeris import BirthData, HouseSystem
from verity.seeds import seed_defaults
from verity.services.entitlements import StaticEntitlements
from verity.services.prediction_service import PredictionService


class SteppingClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return SteppingClock(datetime(2026, 2, 13, 9, 30, tzinfo=UTC))


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'e2e.db'}",
        cache_backend="memory",
        ephemeris_engine="deterministic",
        min_samples_for_learning=2,
    )


@pytest.fixture
async def session_factory(settings):
    engine = build_engine(settings.database_url)
    await init_models(engine)
    factory = build_session_factory(engine)
    async with factory() as session:
        async with session.begin():
            await seed_defaults(session)
    yield factory
    await engine.dispose()


@pytest.fixture
def service(session_factory, settings, clock):
    return PredictionService.from_settings(
        session_factory,
        settings,
        entitlements=StaticEntitlements(premium_users={"ana"}),
        clock=clock,
    )


@pytest.fixture
def sample_birth_data():
    """Sample birth data for testing."""
    return BirthData(
        birth_date=date(1992, 11, 25),
        birth_time=time(14, 42),
        latitude=33.0393,
        longitude=-85.0319,
        timezone="America/New_York",
        house_system=HouseSystem.WHOLE_SIGN,
    )
