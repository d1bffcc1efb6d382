"""Rolling per-user and per-category prediction statistics.

Counters are maintained with single ``INSERT ... ON CONFLICT DO UPDATE``
statements so concurrent writers never lose increments.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import case
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from verity.categories import profile_for
from verity.models.analytics import PredictionAnalytics
from verity.models.category import PredictionCategory


def dialect_insert(session: AsyncSession):
    """The dialect-specific ``insert`` that supports ``on_conflict_do_update``."""
    name = session.get_bind().dialect.name
    if name == "postgresql":
        return pg_insert
    if name == "sqlite":
        return sqlite_insert
    raise NotImplementedError(f"upserts are not supported on {name}")


def _rolling_mean(mean_col, count_col, value: float):
    return (mean_col * count_col + value) / (count_col + 1)


async def record_generated(
    session: AsyncSession,
    user_id: str,
    category: str,
    confidence: float,
    now: datetime,
) -> None:
    """Count a newly generated prediction."""
    insert = dialect_insert(session)
    table = PredictionAnalytics.__table__
    stmt = insert(table).values(
        id=uuid.uuid4(),
        user_id=user_id,
        category=category,
        activity_date=now.date(),
        total_predictions=1,
        average_confidence=confidence,
        last_updated=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "category", "activity_date"],
        set_={
            "total_predictions": table.c.total_predictions + 1,
            "average_confidence": _rolling_mean(table.c.average_confidence, table.c.total_predictions, confidence),
            "last_updated": now,
        },
    )
    await session.execute(stmt)

    await _upsert_category(
        session,
        category,
        now,
        inserted={"total_predictions": 1, "average_confidence": confidence},
        updated={
            "total_predictions": PredictionCategory.__table__.c.total_predictions + 1,
            "average_confidence": _rolling_mean(
                PredictionCategory.__table__.c.average_confidence,
                PredictionCategory.__table__.c.total_predictions,
                confidence,
            ),
        },
    )


async def record_resolved(
    session: AsyncSession,
    user_id: str,
    category: str,
    *,
    accurate: bool,
    expired: bool,
    accuracy: float | None,
    now: datetime,
) -> None:
    """Count a prediction leaving the pending state.

    ``accuracy`` (0-5) feeds the rolling accuracy average; expired
    predictions pass ``None`` and only move the counters.
    """
    insert = dialect_insert(session)
    table = PredictionAnalytics.__table__
    rated = accuracy is not None
    stmt = insert(table).values(
        id=uuid.uuid4(),
        user_id=user_id,
        category=category,
        activity_date=now.date(),
        resolved_predictions=1,
        accurate_predictions=int(accurate),
        expired_predictions=int(expired),
        rated_predictions=int(rated),
        average_accuracy=accuracy if rated else 0.0,
        last_updated=now,
    )
    set_ = {
        "resolved_predictions": table.c.resolved_predictions + 1,
        "accurate_predictions": table.c.accurate_predictions + int(accurate),
        "expired_predictions": table.c.expired_predictions + int(expired),
        "rated_predictions": table.c.rated_predictions + int(rated),
        "last_updated": now,
    }
    if rated:
        set_["average_accuracy"] = _rolling_mean(table.c.average_accuracy, table.c.rated_predictions, accuracy)
    await session.execute(
        stmt.on_conflict_do_update(index_elements=["user_id", "category", "activity_date"], set_=set_)
    )

    cat_table = PredictionCategory.__table__
    updated = {
        "resolved_predictions": cat_table.c.resolved_predictions + 1,
        "accurate_predictions": cat_table.c.accurate_predictions + int(accurate),
        "rated_predictions": cat_table.c.rated_predictions + int(rated),
    }
    if rated:
        updated["average_accuracy"] = _rolling_mean(
            cat_table.c.average_accuracy, cat_table.c.rated_predictions, accuracy
        )
    await _upsert_category(
        session,
        category,
        now,
        inserted={
            "resolved_predictions": 1,
            "accurate_predictions": int(accurate),
            "rated_predictions": int(rated),
            "average_accuracy": accuracy if rated else 0.0,
        },
        updated=updated,
    )


async def record_correlation(session: AsyncSession, category: str, correlation: float, now: datetime) -> None:
    await _upsert_category(
        session,
        category,
        now,
        inserted={"last_confidence_correlation": correlation},
        updated={"last_confidence_correlation": correlation},
    )


async def _upsert_category(
    session: AsyncSession,
    category: str,
    now: datetime,
    inserted: dict,
    updated: dict,
) -> None:
    profile = profile_for(category)
    insert = dialect_insert(session)
    stmt = insert(PredictionCategory.__table__).values(
        category_name=profile.category.value,
        description=profile.description,
        premium_only=profile.premium_only,
        confidence_threshold=profile.confidence_threshold,
        updated_at=now,
        **inserted,
    )
    await session.execute(
        stmt.on_conflict_do_update(
            index_elements=["category_name"],
            set_={**updated, "updated_at": now},
        )
    )


def status_flag(status_col, statuses: tuple[str, ...]):
    """SQL ``1``/``0`` flag for rows whose status is one of ``statuses``."""
    return case((status_col.in_(statuses), 1), else_=0)
