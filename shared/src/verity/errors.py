"""Domain errors raised by the prediction services."""

from __future__ import annotations


class PredictionError(Exception):
    """Base class for caller-facing prediction failures."""

    code = "prediction_error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code.replace("_", " "))
        self.message = message or self.code.replace("_", " ")


class InvalidCategory(PredictionError):
    code = "invalid_category"


class InsufficientBirthData(PredictionError):
    """The user has no stored birth data, or it cannot produce a chart."""

    code = "insufficient_birth_data"


class InsufficientAstrologicalConditions(PredictionError):
    """Confidence stays below the category threshold even after baseline blending."""

    code = "insufficient_astrological_conditions"


class PredictionLimitExceeded(PredictionError):
    code = "prediction_limit_exceeded"


class PremiumRequired(PredictionError):
    code = "premium_required"


class PredictionNotFound(PredictionError):
    code = "prediction_not_found"


class AlreadyVerified(PredictionError):
    """The prediction has already left the pending state."""

    code = "already_verified"
