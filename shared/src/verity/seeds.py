"""Default category rows and prediction templates."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from verity.categories import CATEGORY_PROFILES
from verity.models.category import PredictionCategory
from verity.models.template import PredictionTemplate
from verity.services.analytics import dialect_insert

logger = logging.getLogger(__name__)


async def seed_defaults(session: AsyncSession) -> tuple[int, int]:
    """Insert missing category and template rows; existing rows are left alone.

    Returns (categories inserted, templates inserted).
    """
    insert = dialect_insert(session)
    now = datetime.now(UTC)
    categories_added = 0
    templates_added = 0

    for profile in CATEGORY_PROFILES.values():
        result = await session.execute(
            insert(PredictionCategory.__table__)
            .values(
                category_name=profile.category.value,
                description=profile.description,
                premium_only=profile.premium_only,
                confidence_threshold=profile.confidence_threshold,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["category_name"])
        )
        categories_added += result.rowcount or 0

        for seed in profile.seed_templates:
            result = await session.execute(
                insert(PredictionTemplate.__table__)
                .values(
                    category=profile.category.value,
                    template_name=seed.name,
                    template_content=seed.content,
                    trigger_factors=list(seed.trigger_factors),
                    specificity_level=seed.specificity_level,
                    created_at=now,
                    updated_at=now,
                )
                .on_conflict_do_nothing(index_elements=["category", "template_name"])
            )
            templates_added += result.rowcount or 0

    logger.info("Seeded %d categories and %d templates", categories_added, templates_added)
    return categories_added, templates_added
