"""Error models and exceptions.

``AppError`` is the error payload returned inside API response envelopes;
``AppException`` and its subclasses are raised by the service layer when an
operation cannot produce a result at all.
"""

from enum import Enum

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Machine-readable error codes returned by the API."""

    INVALID_INPUT = "INVALID_INPUT"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    GAME_NOT_FOUND = "GAME_NOT_FOUND"
    RECOMMENDATION_NOT_FOUND = "RECOMMENDATION_NOT_FOUND"
    DATA_UNAVAILABLE = "DATA_UNAVAILABLE"
    API_ERROR = "API_ERROR"


class AppError(BaseModel):
    """Error details included in failed API responses."""

    code: ErrorCode = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Technical error message")
    user_message: str = Field(..., description="Message safe to show to end users")


class AppException(Exception):
    """Base class for service-layer failures."""

    code: ErrorCode = ErrorCode.API_ERROR
    user_message: str = "Something went wrong. Please try again."

    def to_error(self) -> AppError:
        return AppError(code=self.code, message=str(self), user_message=self.user_message)


class CatalogError(AppException):
    """Raised when the game catalog cannot be loaded from any source."""

    code = ErrorCode.DATA_UNAVAILABLE
    user_message = "Failed to load games. Please try again later."


class RecommendationStoreError(AppException):
    """Raised when recommendation records cannot be persisted."""

    code = ErrorCode.DATA_UNAVAILABLE
    user_message = "Failed to save recommendations."
