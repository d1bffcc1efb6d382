"""Bounded learning from verified outcomes.

Verified outcomes are buffered per category in hourly buckets. Once a
category has enough samples the batch is drained and turned into a single
small nudge of that category's template confidence multipliers.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from datetime import datetime
from statistics import fmean
from typing import Protocol

from pydantic import ValidationError

from verity.categories import Category
from verity.schemas.predictions import LearningOutcome, LearningSample

logger = logging.getLogger(__name__)

ACCURACY_PIVOT = 3.5


def pearson_correlation(xs: Sequence[float], ys: Sequence[float]) -> float:
    """Pearson correlation coefficient; 0.0 when undefined."""
    n = min(len(xs), len(ys))
    if n < 2:
        return 0.0
    xs = list(xs[:n])
    ys = list(ys[:n])
    mean_x = fmean(xs)
    mean_y = fmean(ys)
    cov = sum((x - mean_x) * (y - mean_y) for x, y in zip(xs, ys))
    var_x = sum((x - mean_x) ** 2 for x in xs)
    var_y = sum((y - mean_y) ** 2 for y in ys)
    denominator = math.sqrt(var_x * var_y)
    if denominator == 0:
        return 0.0
    return max(-1.0, min(1.0, cov / denominator))


def analyze_batch(
    category: Category | str,
    samples: Sequence[LearningSample],
    adjustment: float = 0.05,
    pivot: float = ACCURACY_PIVOT,
) -> LearningOutcome:
    """Mean accuracy, confidence/accuracy correlation, and the resulting nudge.

    The nudge is ``+adjustment`` when the batch averages above ``pivot``
    (on the 0-5 scale) and ``-adjustment`` otherwise.
    """
    if not samples:
        raise ValueError("cannot analyse an empty batch")
    accuracies = [s.accuracy for s in samples]
    confidences = [s.confidence for s in samples]
    average = fmean(accuracies)
    delta = adjustment if average > pivot else -adjustment
    return LearningOutcome(
        category=Category(category),
        sample_count=len(samples),
        average_accuracy=round(average, 4),
        correlation=round(pearson_correlation(confidences, accuracies), 4),
        adjustment=delta,
    )


def bucket_key(now: datetime) -> str:
    """Hourly bucket identifier, e.g. ``2026-03-01-14``."""
    return now.strftime("%Y-%m-%d-%H")


class LearningBuffer(Protocol):
    async def push(self, sample: LearningSample) -> int:
        """Append a sample; returns the category's buffered count for the bucket."""
        ...

    async def drain(self, category: Category | str, bucket: str) -> list[LearningSample]:
        """Atomically remove and return a category's samples for a bucket."""
        ...


class InMemoryLearningBuffer:
    def __init__(self) -> None:
        self._buckets: dict[tuple[str, str], list[LearningSample]] = {}

    async def push(self, sample: LearningSample) -> int:
        key = (bucket_key(sample.recorded_at), sample.category.value)
        self._buckets.setdefault(key, []).append(sample)
        return len(self._buckets[key])

    async def drain(self, category: Category | str, bucket: str) -> list[LearningSample]:
        return self._buckets.pop((bucket, Category(category).value), [])


class RedisLearningBuffer:
    """Redis lists keyed by bucket and category, expiring with the bucket."""

    prefix = "learning"

    def __init__(self, redis, ttl_seconds: int = 7200) -> None:
        self.redis = redis
        self.ttl_seconds = ttl_seconds

    def key(self, bucket: str, category: Category | str) -> str:
        return f"{self.prefix}:{bucket}:{Category(category).value}"

    async def push(self, sample: LearningSample) -> int:
        key = self.key(bucket_key(sample.recorded_at), sample.category)
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.rpush(key, sample.model_dump_json())
            pipe.expire(key, self.ttl_seconds)
            length, _ = await pipe.execute()
        return int(length)

    async def drain(self, category: Category | str, bucket: str) -> list[LearningSample]:
        key = self.key(bucket, category)
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.lrange(key, 0, -1)
            pipe.delete(key)
            raw_items, _ = await pipe.execute()

        samples: list[LearningSample] = []
        for raw in raw_items or []:
            try:
                samples.append(LearningSample.model_validate_json(raw))
            except ValidationError as e:
                logger.warning("Dropping unreadable learning sample in %s: %s", key, e)
        return samples


class BatchLearner:
    """Collects samples and emits a batch outcome once a category is full."""

    def __init__(
        self,
        buffer: LearningBuffer,
        min_samples: int = 10,
        adjustment: float = 0.05,
    ) -> None:
        self.buffer = buffer
        self.min_samples = min_samples
        self.adjustment = adjustment

    async def observe(self, sample: LearningSample) -> LearningOutcome | None:
        count = await self.buffer.push(sample)
        if count < self.min_samples:
            return None

        bucket = bucket_key(sample.recorded_at)
        batch = await self.buffer.drain(sample.category, bucket)
        if len(batch) < self.min_samples:
            # A concurrent drain took part of the batch; put the rest back
            for leftover in batch:
                await self.buffer.push(leftover)
            return None

        outcome = analyze_batch(sample.category, batch, self.adjustment)
        logger.info(
            "Learning batch for %s: %d samples, avg accuracy %.2f, correlation %.3f, adjustment %+.2f",
            outcome.category.value,
            outcome.sample_count,
            outcome.average_accuracy,
            outcome.correlation,
            outcome.adjustment,
        )
        return outcome
