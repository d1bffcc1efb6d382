"""Audit trail of prediction generation attempts."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Float, Index, Integer, Text, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column

from verity.models.base import Base, UTCDateTime


class PredictionGenerationLog(Base):
    __tablename__ = "prediction_generation_log"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    generation_trigger: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("'api_request'"))
    prediction_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    template_id: Mapped[int | None] = mapped_column(Integer)
    confidence_score: Mapped[float | None] = mapped_column(Float)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    error_code: Mapped[str | None] = mapped_column(Text)
    error_message: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, server_default=func.now())

    __table_args__ = (
        Index("idx_generation_log_user_created", "user_id", "created_at"),
        Index("idx_generation_log_template", "template_id"),
    )
