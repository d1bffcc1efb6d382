"""Tests for environment-driven settings and service wiring."""

from unittest.mock import MagicMock

import pytest
from ephemeris.fake import DeterministicEphemeris
from pydantic import ValidationError
from verity.config import Settings, get_settings
from verity.services.chart_cache import InMemoryCacheBackend
from verity.services.learning import InMemoryLearningBuffer, RedisLearningBuffer
from verity.services.prediction_service import PredictionService, build_ephemeris

# ---------- Default values ----------


class TestSettingsDefaults:
    def test_defaults(self, monkeypatch):
        for key in ("DATABASE_URL", "CACHE_BACKEND", "MAX_PENDING_PREDICTIONS", "EPHEMERIS_ENGINE"):
            monkeypatch.delenv(key, raising=False)
        s = Settings(_env_file=None)
        assert s.max_pending_predictions == 3
        assert s.default_timeframe_hours == 48
        assert s.min_confidence_threshold == 0.3
        assert s.max_confidence_threshold == 0.95
        assert s.min_samples_for_learning == 10
        assert s.learning_adjustment == 0.05
        assert s.expiry_grace_hours == 24
        assert s.expiry_penalty == 0.01
        assert s.transit_cache_ttl_seconds == 3600
        assert s.cache_backend == "redis"
        assert s.ephemeris_engine == "swisseph"

    def test_override_by_field_name(self):
        s = Settings(_env_file=None, max_pending_predictions=5, cache_backend="memory")
        assert s.max_pending_predictions == 5
        assert s.cache_backend == "memory"


class TestSettingsFromEnvironment:
    def test_env_aliases(self, monkeypatch):
        monkeypatch.setenv("MAX_PENDING_PREDICTIONS", "7")
        monkeypatch.setenv("EPHEMERIS_ENGINE", "deterministic")
        monkeypatch.setenv("INCLUDE_MINOR_ASPECTS", "true")
        s = get_settings()
        assert s.max_pending_predictions == 7
        assert s.ephemeris_engine == "deterministic"
        assert s.include_minor_aspects is True
        assert get_settings() is s

    def test_invalid_backend_rejected(self, monkeypatch):
        monkeypatch.setenv("CACHE_BACKEND", "memcached")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)


class TestServiceWiring:
    async def test_memory_backends(self, session_factory):
        settings = Settings(
            _env_file=None,
            cache_backend="memory",
            ephemeris_engine="deterministic",
            max_pending_predictions=4,
            min_samples_for_learning=6,
        )
        service = PredictionService.from_settings(session_factory, settings)
        assert isinstance(service.astro.calculator.port, DeterministicEphemeris)
        assert isinstance(service.astro.chart_cache.backend, InMemoryCacheBackend)
        assert isinstance(service.verifier.learner.buffer, InMemoryLearningBuffer)
        assert service.store.max_pending == 4
        assert service.verifier.learner.min_samples == 6

    async def test_redis_backends_share_client(self, session_factory):
        redis = MagicMock()
        settings = Settings(_env_file=None, cache_backend="redis", learning_bucket_ttl_seconds=900)
        service = PredictionService.from_settings(
            session_factory, settings, port=DeterministicEphemeris(), redis=redis
        )
        assert service.astro.chart_cache.backend is redis
        assert service.astro.transit_cache.backend is redis
        buffer = service.verifier.learner.buffer
        assert isinstance(buffer, RedisLearningBuffer)
        assert buffer.ttl_seconds == 900

    async def test_minor_aspects_flag(self, session_factory):
        settings = Settings(
            _env_file=None, cache_backend="memory", ephemeris_engine="deterministic", include_minor_aspects=True
        )
        service = PredictionService.from_settings(session_factory, settings)
        assert service.astro.calculator.config.aspect("semisquare") is not None

    def test_build_ephemeris_deterministic(self):
        port = build_ephemeris(Settings(_env_file=None, ephemeris_engine="deterministic"))
        assert port.name == "deterministic"
