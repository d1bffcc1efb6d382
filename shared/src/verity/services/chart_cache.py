"""Read-through caches for natal charts and daily transit snapshots."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import date
from typing import Protocol

from ephemeris.calculator import PositionCalculator
from pydantic import ValidationError

from verity.schemas.ephemeris import BirthChart, BirthData, TransitSnapshot

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    async def get(self, key: str) -> str | bytes | None: ...

    async def set(self, key: str, value: str, ex: int | None = None) -> object: ...

    async def delete(self, *keys: str) -> object: ...


class InMemoryCacheBackend:
    """Process-local key/value store with optional per-key expiry."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, tuple[str, float | None]] = {}

    async def get(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        expires_at = self._clock() + ex if ex else None
        self._data[key] = (value, expires_at)
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._data.pop(key, None) is not None:
                removed += 1
        return removed


def redis_backend(redis_url: str):
    """Redis client usable as a :class:`CacheBackend`."""
    import redis.asyncio as aioredis

    return aioredis.from_url(redis_url, decode_responses=True)


class ChartCache:
    """Natal charts keyed by user, kept until the birth data changes.

    Entries carry the fingerprint of the birth data they were cast from; a
    lookup with a different fingerprint is a miss.
    """

    prefix = "natal_chart"

    def __init__(self, backend: CacheBackend) -> None:
        self.backend = backend

    def key(self, user_id: str) -> str:
        return f"{self.prefix}:{user_id}"

    async def get(self, user_id: str, fingerprint: str) -> BirthChart | None:
        try:
            cached = await self.backend.get(self.key(user_id))
        except Exception as e:
            logger.warning("Chart cache read failed for %s: %s", user_id, e)
            return None
        if not cached:
            return None
        try:
            chart = BirthChart.model_validate_json(cached)
        except ValidationError as e:
            logger.warning("Discarding unreadable cached chart for %s: %s", user_id, e)
            return None
        if chart.fingerprint != fingerprint:
            logger.info("Cached chart for %s is stale (birth data changed)", user_id)
            return None
        return chart

    async def put(self, user_id: str, chart: BirthChart) -> None:
        try:
            await self.backend.set(self.key(user_id), chart.model_dump_json())
        except Exception as e:
            logger.warning("Chart cache write failed for %s: %s", user_id, e)

    async def invalidate(self, user_id: str) -> None:
        try:
            await self.backend.delete(self.key(user_id))
        except Exception as e:
            logger.warning("Chart cache invalidation failed for %s: %s", user_id, e)


class TransitCache:
    """Daily transit snapshots with a fixed time-to-live."""

    prefix = "transits"

    def __init__(self, backend: CacheBackend, ttl_seconds: int = 3600) -> None:
        self.backend = backend
        self.ttl_seconds = ttl_seconds

    def key(self, target_date: date) -> str:
        return f"{self.prefix}:{target_date.isoformat()}"

    async def get(self, target_date: date) -> TransitSnapshot | None:
        try:
            cached = await self.backend.get(self.key(target_date))
        except Exception as e:
            logger.warning("Transit cache read failed for %s: %s", target_date, e)
            return None
        if not cached:
            return None
        try:
            return TransitSnapshot.model_validate_json(cached)
        except ValidationError as e:
            logger.warning("Discarding unreadable cached transits for %s: %s", target_date, e)
            return None

    async def put(self, snapshot: TransitSnapshot) -> None:
        try:
            await self.backend.set(self.key(snapshot.date_context), snapshot.model_dump_json(), ex=self.ttl_seconds)
        except Exception as e:
            logger.warning("Transit cache write failed for %s: %s", snapshot.date_context, e)


class AstroDataProvider:
    """Cached access to the pure position calculator.

    Degraded results are returned to the caller but never cached, so the
    next request retries the ephemeris.
    """

    def __init__(
        self,
        calculator: PositionCalculator,
        chart_cache: ChartCache,
        transit_cache: TransitCache,
    ) -> None:
        self.calculator = calculator
        self.chart_cache = chart_cache
        self.transit_cache = transit_cache

    async def birth_chart(self, user_id: str, birth_data: BirthData) -> BirthChart:
        fingerprint = birth_data.fingerprint()
        chart = await self.chart_cache.get(user_id, fingerprint)
        if chart is not None:
            return chart

        chart = self.calculator.birth_chart(birth_data)
        if not chart.degraded:
            await self.chart_cache.put(user_id, chart)
        return chart

    async def transits(self, target_date: date) -> TransitSnapshot:
        snapshot = await self.transit_cache.get(target_date)
        if snapshot is not None:
            return snapshot

        snapshot = self.calculator.transit_snapshot(target_date)
        if not snapshot.degraded:
            await self.transit_cache.put(snapshot)
        return snapshot

    async def forget_user(self, user_id: str) -> None:
        await self.chart_cache.invalidate(user_id)
