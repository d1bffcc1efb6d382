"""Caller-facing prediction operations."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime

from ephemeris.bodies import EngineConfig
from ephemeris.calculator import PositionCalculator
from ephemeris.fake import DeterministicEphemeris
from ephemeris.port import EphemerisPort
from ephemeris.swiss import SwissEphemeris
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from verity.categories import Category, profile_for
from verity.config import Settings, get_settings
from verity.errors import (
    InsufficientAstrologicalConditions,
    InsufficientBirthData,
    InvalidCategory,
    PredictionError,
    PremiumRequired,
)
from verity.models.birth_data import UserBirthData
from verity.models.category import PredictionCategory
from verity.models.preferences import UserPredictionPreferences
from verity.schemas.ephemeris import BirthChart, BirthData, HouseSystem
from verity.schemas.predictions import (
    DueAlert,
    GeneratedPrediction,
    GenerationOptions,
    PredictionFilters,
    PredictionPreferences,
    PredictionSummary,
    SweepResult,
    SystemStats,
    UserAnalytics,
    VerificationRequest,
    VerificationResult,
)
from verity.services.chart_cache import (
    AstroDataProvider,
    ChartCache,
    InMemoryCacheBackend,
    TransitCache,
    redis_backend,
)
from verity.services.entitlements import EntitlementChecker, StaticEntitlements
from verity.services.learning import BatchLearner, InMemoryLearningBuffer, RedisLearningBuffer
from verity.services.potential import PredictionPotentialAnalyzer
from verity.services.prediction_store import PredictionStore, to_summary
from verity.services.template_selector import TemplateSelector
from verity.services.verification import VerificationEngine

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def build_ephemeris(settings: Settings) -> EphemerisPort:
    if settings.ephemeris_engine == "deterministic":
        logger.warning("Using deterministic ephemeris; positions are not astronomically accurate")
        return DeterministicEphemeris()
    return SwissEphemeris(settings.swisseph_ephe_path)


def _birth_data_from_row(row: UserBirthData) -> BirthData:
    return BirthData(
        birth_date=row.birth_date,
        birth_time=row.birth_time,
        latitude=row.latitude,
        longitude=row.longitude,
        timezone=row.timezone,
        house_system=HouseSystem(row.house_system),
    )


class PredictionService:
    """Generates, verifies, and reports on predictions.

    Each public method runs in its own transaction from ``session_factory``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        astro: AstroDataProvider,
        *,
        analyzer: PredictionPotentialAnalyzer | None = None,
        selector: TemplateSelector | None = None,
        store: PredictionStore | None = None,
        verifier: VerificationEngine | None = None,
        entitlements: EntitlementChecker | None = None,
        default_timeframe_hours: int = 48,
        max_timeframe_hours: int = 720,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.session_factory = session_factory
        self.astro = astro
        self.analyzer = analyzer or PredictionPotentialAnalyzer()
        self.selector = selector or TemplateSelector()
        self.store = store or PredictionStore()
        self.verifier = verifier or VerificationEngine(self.store, BatchLearner(InMemoryLearningBuffer()))
        self.entitlements = entitlements or StaticEntitlements()
        self.default_timeframe_hours = default_timeframe_hours
        self.max_timeframe_hours = max_timeframe_hours
        self.clock = clock

    @classmethod
    def from_settings(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings | None = None,
        *,
        port: EphemerisPort | None = None,
        redis=None,
        entitlements: EntitlementChecker | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> PredictionService:
        settings = settings or get_settings()
        calculator = PositionCalculator(
            port or build_ephemeris(settings),
            EngineConfig.default(settings.include_minor_aspects),
        )

        if settings.cache_backend == "redis":
            redis = redis if redis is not None else redis_backend(settings.redis_url)
            cache_backend = redis
            buffer = RedisLearningBuffer(redis, settings.learning_bucket_ttl_seconds)
        else:
            cache_backend = InMemoryCacheBackend()
            buffer = InMemoryLearningBuffer()

        astro = AstroDataProvider(
            calculator,
            ChartCache(cache_backend),
            TransitCache(cache_backend, settings.transit_cache_ttl_seconds),
        )
        store = PredictionStore(max_pending=settings.max_pending_predictions)
        verifier = VerificationEngine(
            store,
            BatchLearner(buffer, settings.min_samples_for_learning, settings.learning_adjustment),
            expiry_grace_hours=settings.expiry_grace_hours,
            expiry_penalty=settings.expiry_penalty,
            sweep_batch_size=settings.sweep_batch_size,
        )
        return cls(
            session_factory,
            astro,
            analyzer=PredictionPotentialAnalyzer(settings.min_confidence_threshold, settings.max_confidence_threshold),
            store=store,
            verifier=verifier,
            entitlements=entitlements,
            default_timeframe_hours=settings.default_timeframe_hours,
            max_timeframe_hours=settings.max_timeframe_hours,
            clock=clock,
        )

    # Birth data

    async def update_birth_data(self, user_id: str, birth_data: BirthData) -> None:
        """Store a user's birth data and drop their cached chart."""
        now = self.clock()
        async with self.session_factory() as session:
            async with session.begin():
                row = await session.get(UserBirthData, user_id)
                if row is None:
                    row = UserBirthData(user_id=user_id, created_at=now)
                    session.add(row)
                row.birth_date = birth_data.birth_date
                row.birth_time = birth_data.birth_time
                row.latitude = birth_data.latitude
                row.longitude = birth_data.longitude
                row.timezone = birth_data.timezone
                row.house_system = birth_data.house_system.value
                row.updated_at = now
        await self.astro.forget_user(user_id)

    async def _load_birth_data(self, session: AsyncSession, user_id: str, lock: bool = False) -> BirthData:
        stmt = select(UserBirthData).where(UserBirthData.user_id == user_id)
        if lock:
            # Serialises concurrent generations for one user on PostgreSQL
            stmt = stmt.with_for_update()
        row = (await session.execute(stmt)).scalars().first()
        if row is None:
            raise InsufficientBirthData(f"no birth data stored for user {user_id}")
        return _birth_data_from_row(row)

    async def get_birth_chart(self, user_id: str) -> BirthChart:
        async with self.session_factory() as session:
            birth_data = await self._load_birth_data(session, user_id)
        return await self.astro.birth_chart(user_id, birth_data)

    # Preferences

    async def update_preferences(self, user_id: str, preferences: PredictionPreferences) -> None:
        now = self.clock()
        async with self.session_factory() as session:
            async with session.begin():
                row = await session.get(UserPredictionPreferences, user_id)
                if row is None:
                    row = UserPredictionPreferences(user_id=user_id, created_at=now)
                    session.add(row)
                row.preferred_timeframe_hours = preferences.preferred_timeframe_hours
                row.updated_at = now

    async def get_preferences(self, user_id: str) -> PredictionPreferences:
        async with self.session_factory() as session:
            row = await session.get(UserPredictionPreferences, user_id)
        if row is None:
            return PredictionPreferences()
        return PredictionPreferences(preferred_timeframe_hours=row.preferred_timeframe_hours)

    async def _resolve_timeframe(self, session: AsyncSession, user_id: str, options: GenerationOptions) -> int:
        """Requested hours, else the user's preference, else the default; capped at the maximum."""
        hours = options.timeframe_hours
        if hours is None:
            row = await session.get(UserPredictionPreferences, user_id)
            if row is not None:
                hours = row.preferred_timeframe_hours
        return min(hours or self.default_timeframe_hours, self.max_timeframe_hours)

    # Generation

    async def _category_settings(self, session: AsyncSession, category: Category) -> tuple[bool, float]:
        """(premium_only, confidence threshold) with stored overrides applied."""
        profile = profile_for(category)
        row = await session.get(PredictionCategory, category.value)
        if row is None:
            return profile.premium_only, max(profile.confidence_threshold, self.analyzer.min_confidence)
        if not row.active:
            raise InvalidCategory(f"category {category.value} is disabled")
        return row.premium_only, max(row.confidence_threshold, self.analyzer.min_confidence)

    async def generate_prediction(
        self,
        user_id: str,
        category: Category | str,
        options: GenerationOptions | None = None,
    ) -> GeneratedPrediction:
        options = options or GenerationOptions()
        now = self.clock()
        category_value = category.value if isinstance(category, Category) else str(category)
        try:
            try:
                parsed = Category(category_value)
            except ValueError as exc:
                raise InvalidCategory(f"unknown category {category_value!r}") from exc

            async with self.session_factory() as session:
                async with session.begin():
                    birth_data = await self._load_birth_data(session, user_id, lock=True)
                    timeframe = await self._resolve_timeframe(session, user_id, options)

                    premium_only, threshold = await self._category_settings(session, parsed)
                    if premium_only and not await self.entitlements.has_premium(user_id):
                        raise PremiumRequired(f"{parsed.value} predictions require a premium subscription")

                    await self.store.ensure_capacity(session, user_id, now)

                    # Degraded charts and transits still yield a baseline prediction
                    chart = await self.astro.birth_chart(user_id, birth_data)
                    transits = await self.astro.transits(now.date())
                    aspects = self.astro.calculator.transit_aspects(transits, chart)
                    potential = self.analyzer.analyze(parsed, transits, chart, aspects)
                    if potential.confidence < threshold:
                        raise InsufficientAstrologicalConditions(
                            f"confidence {potential.confidence:.2f} below {parsed.value} threshold {threshold:.2f}"
                        )

                    choice = await self.selector.select(session, potential)
                    rendered = self.selector.render(choice, potential, timeframe)
                    prediction, slots = await self.store.save(
                        session,
                        user_id=user_id,
                        potential=potential,
                        rendered=rendered,
                        choice=choice,
                        timeframe_hours=timeframe,
                        now=now,
                    )
                    await self.store.log_generation(
                        session,
                        user_id=user_id,
                        category=parsed.value,
                        trigger=options.trigger,
                        now=now,
                        prediction=prediction,
                        choice=choice,
                    )
        except PredictionError as exc:
            logger.info("Prediction generation refused for %s (%s): %s", user_id, category_value, exc.code)
            await self._log_failure(user_id, category_value, options.trigger, exc, now)
            raise
        except Exception as exc:
            logger.exception("Prediction generation failed for %s (%s)", user_id, category_value)
            await self._log_failure(user_id, category_value, options.trigger, exc, now)
            raise

        logger.info(
            "Generated %s prediction %s for %s (confidence %.2f, template %s)",
            parsed.value,
            prediction.id,
            user_id,
            potential.confidence,
            choice.name,
        )
        return GeneratedPrediction(
            prediction_id=prediction.id,
            content=rendered.text,
            confidence=potential.confidence,
            category=parsed,
            timeframe=timeframe,
            reasoning=list(potential.reasoning),
            alert_schedule=slots,
            expires_at=prediction.expires_at,
            template_id=choice.template_id,
        )

    async def _log_failure(
        self,
        user_id: str,
        category: str,
        trigger: str,
        error: Exception,
        now: datetime,
    ) -> None:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    await self.store.log_generation(
                        session,
                        user_id=user_id,
                        category=category,
                        trigger=trigger,
                        now=now,
                        error=error,
                    )
        except Exception as e:
            logger.warning("Could not record failed generation for %s: %s", user_id, e)

    # Verification

    async def verify_prediction(
        self,
        prediction_id: uuid.UUID,
        user_id: str,
        request: VerificationRequest,
    ) -> VerificationResult:
        async with self.session_factory() as session:
            async with session.begin():
                return await self.verifier.verify(session, prediction_id, user_id, request, self.clock())

    async def add_feedback(
        self,
        prediction_id: uuid.UUID,
        user_id: str,
        request: VerificationRequest,
    ) -> uuid.UUID:
        async with self.session_factory() as session:
            async with session.begin():
                feedback = await self.verifier.add_feedback(session, prediction_id, user_id, request, self.clock())
                return feedback.id

    async def run_expiry_sweep(self) -> SweepResult:
        return await self.verifier.sweep_expired(self.session_factory, self.clock())

    # Reads

    async def get_prediction(self, prediction_id: uuid.UUID, user_id: str) -> PredictionSummary:
        async with self.session_factory() as session:
            prediction = await self.store.get(session, prediction_id, user_id)
            return to_summary(prediction, self.clock())

    async def get_user_predictions(
        self,
        user_id: str,
        filters: PredictionFilters | None = None,
    ) -> list[PredictionSummary]:
        async with self.session_factory() as session:
            return await self.store.list_for_user(session, user_id, filters, self.clock())

    async def get_active_predictions(self, user_id: str) -> list[PredictionSummary]:
        return await self.get_user_predictions(user_id, PredictionFilters(active_only=True))

    async def get_user_analytics(self, user_id: str) -> UserAnalytics:
        async with self.session_factory() as session:
            return await self.store.user_analytics(session, user_id)

    async def get_system_stats(self) -> SystemStats:
        async with self.session_factory() as session:
            return await self.store.system_stats(session)

    async def count_pending(self, user_id: str) -> int:
        async with self.session_factory() as session:
            return await self.store.count_pending(session, user_id, self.clock())

    # Alerts

    async def due_alerts(self, limit: int = 100) -> list[DueAlert]:
        async with self.session_factory() as session:
            alerts = await self.store.due_alerts(session, self.clock(), limit)
            return [
                DueAlert(
                    alert_id=a.id,
                    prediction_id=a.prediction_id,
                    alert_type=a.alert_type,
                    alert_at=a.alert_at,
                )
                for a in alerts
            ]

    async def mark_alert_sent(self, alert_id: uuid.UUID) -> bool:
        async with self.session_factory() as session:
            async with session.begin():
                return await self.store.mark_alert_sent(session, alert_id, self.clock())

