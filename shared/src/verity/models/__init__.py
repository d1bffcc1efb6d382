"""SQLAlchemy ORM models for Verity."""

from verity.models.base import Base
from verity.models.birth_data import UserBirthData
from verity.models.template import PredictionTemplate
from verity.models.category import PredictionCategory
from verity.models.prediction import Prediction
from verity.models.feedback import PredictionFeedback
from verity.models.alert import PredictionAlert
from verity.models.generation_log import PredictionGenerationLog
from verity.models.analytics import PredictionAnalytics
from verity.models.preferences import UserPredictionPreferences

__all__ = [
    "Base",
    "UserBirthData",
    "PredictionTemplate",
    "PredictionCategory",
    "Prediction",
    "PredictionFeedback",
    "PredictionAlert",
    "PredictionGenerationLog",
    "PredictionAnalytics",
    "UserPredictionPreferences",
]
