"""Pydantic schemas for prediction generation and verification."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from verity.categories import Category
from verity.schemas.ephemeris import LunarPhase


class FeedbackType(str, Enum):
    ACCURATE = "accurate"
    PARTIALLY_ACCURATE = "partially_accurate"
    INACCURATE = "inaccurate"
    TOO_VAGUE = "too_vague"
    COULD_NOT_VERIFY = "could_not_verify"


# Accuracy implied by a feedback type when no rating is given
FEEDBACK_SCORES: dict[FeedbackType, int] = {
    FeedbackType.ACCURATE: 5,
    FeedbackType.PARTIALLY_ACCURATE: 3,
    FeedbackType.INACCURATE: 1,
    FeedbackType.TOO_VAGUE: 2,
    FeedbackType.COULD_NOT_VERIFY: 0,
}


class GenerationOptions(BaseModel):
    """Caller options for a new prediction."""

    timeframe_hours: int | None = Field(default=None, ge=1)
    trigger: str = "api_request"


class AstroFactor(BaseModel):
    """One astrological condition that contributed to a prediction."""

    kind: Literal["house_activation", "planetary_aspect", "lunar_phase", "baseline"]
    planet: str | None = None
    natal_body: str | None = None
    aspect: str | None = None
    house: int | None = None
    phase: str | None = None
    orb: float | None = None
    strength: float = Field(ge=0.0, le=1.0)
    contribution: float = 0.0

    def tokens(self) -> set[str]:
        """Keywords templates can declare as triggers."""
        found: set[str] = set()
        if self.planet:
            found.add(self.planet)
        if self.aspect:
            found.add(self.aspect)
        if self.house is not None:
            found.add(f"house_{self.house}")
        if self.phase:
            found.add(self.phase)
        return found


class PredictionPotential(BaseModel):
    """Scored prediction potential for one category."""

    category: Category
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: list[str] = Field(default_factory=list)
    factors: list[AstroFactor] = Field(default_factory=list)
    lunar_phase: LunarPhase | None = None
    baseline: bool = False

    def tokens(self) -> set[str]:
        found: set[str] = set()
        for factor in self.factors:
            found |= factor.tokens()
        return found


class TemplateChoice(BaseModel):
    """The template picked for a prediction."""

    template_id: int | None = None
    name: str
    content: str
    confidence_multiplier: float = 1.0
    specificity_level: str = "medium"
    score: float = 0.0
    is_default: bool = False


class RenderedPrediction(BaseModel):
    text: str
    specificity: float = Field(ge=0.0, le=1.0)
    peak_hours: int | None = None


class AlertSlot(BaseModel):
    alert_type: Literal["48hr_warning", "24hr_warning", "2hr_warning", "verification_reminder"]
    offset_hours: int
    alert_at: datetime


class GeneratedPrediction(BaseModel):
    """Result of a successful generation."""

    prediction_id: uuid.UUID
    content: str
    confidence: float
    category: Category
    timeframe: int
    reasoning: list[str]
    alert_schedule: list[AlertSlot]
    expires_at: datetime
    template_id: int | None = None


class VerificationRequest(BaseModel):
    """User-submitted verification of a pending prediction."""

    feedback_type: FeedbackType | None = None
    accuracy_rating: int | None = Field(default=None, ge=1, le=5)
    actual_outcome: str | None = None
    helpful_rating: int | None = Field(default=None, ge=1, le=5)

    def accuracy_score(self) -> float:
        """Accuracy on the 0-5 scale used by the learning step."""
        if self.accuracy_rating is not None:
            return float(self.accuracy_rating)
        if self.feedback_type is not None:
            return float(FEEDBACK_SCORES[self.feedback_type])
        return 0.0


class VerificationResult(BaseModel):
    prediction_id: uuid.UUID
    status: str
    feedback_id: uuid.UUID | None = None
    user_success_rate: float
    learning_applied: bool = False


class LearningSample(BaseModel):
    """One verified outcome buffered for the learning step."""

    prediction_id: uuid.UUID
    category: Category
    confidence: float
    accuracy: float = Field(ge=0.0, le=5.0)
    template_id: int | None = None
    recorded_at: datetime


class LearningOutcome(BaseModel):
    category: Category
    sample_count: int
    average_accuracy: float
    correlation: float
    adjustment: float


class PredictionSummary(BaseModel):
    prediction_id: uuid.UUID
    category: str
    content: str
    confidence: float
    timeframe_hours: int
    verification_status: str
    created_at: datetime
    expires_at: datetime
    verified_at: datetime | None = None
    hours_remaining: float | None = None
    reasoning: list[str] = Field(default_factory=list)


class PredictionFilters(BaseModel):
    status: str | None = None
    category: Category | None = None
    active_only: bool = False
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class FeedbackBreakdown(BaseModel):
    """Aggregate of the feedback a user left on their predictions."""

    total_feedback: int = 0
    avg_accuracy_rating: float = 0.0
    avg_helpful_rating: float = 0.0
    type_counts: dict[str, int] = Field(default_factory=dict)


class UserAnalytics(BaseModel):
    total_predictions: int = 0
    pending_predictions: int = 0
    resolved_predictions: int = 0
    accurate_predictions: int = 0
    success_rate: float = 0.0
    avg_confidence: float = 0.0
    avg_accurate_confidence: float = 0.0
    categories_used: int = 0
    status_counts: dict[str, int] = Field(default_factory=dict)
    feedback: FeedbackBreakdown = Field(default_factory=FeedbackBreakdown)
    # 0.5 until the user has left enough feedback to judge
    reliability_score: float = 0.5


class PredictionPreferences(BaseModel):
    preferred_timeframe_hours: int | None = Field(default=None, ge=1)


class SweepResult(BaseModel):
    processed_count: int = 0
    failed_count: int = 0
    failed_ids: list[uuid.UUID] = Field(default_factory=list)


class CategoryStats(BaseModel):
    category: str
    total_predictions: int
    resolved_predictions: int
    accurate_predictions: int
    average_confidence: float
    average_accuracy: float
    last_confidence_correlation: float | None = None


class TemplateStats(BaseModel):
    template_id: int
    category: str
    template_name: str
    usage_count: int
    success_rate: float
    confidence_multiplier: float


class SystemStats(BaseModel):
    total_predictions: int
    status_counts: dict[str, int]
    categories: list[CategoryStats]
    templates: list[TemplateStats]


class DueAlert(BaseModel):
    """A scheduled alert ready for delivery by the notification service."""

    alert_id: uuid.UUID
    prediction_id: uuid.UUID
    alert_type: str
    alert_at: datetime
