"""Data models for the game portal backend."""

from .core import (
    CamelModel,
    Category,
    GameData,
    GameType,
    RecommendationStats,
    RecommendedGame,
)
from .errors import (
    AppError,
    AppException,
    CatalogError,
    ErrorCode,
    RecommendationStoreError,
)

__all__ = [
    "CamelModel",
    "Category",
    "GameData",
    "GameType",
    "RecommendationStats",
    "RecommendedGame",
    "AppError",
    "AppException",
    "CatalogError",
    "ErrorCode",
    "RecommendationStoreError",
]
