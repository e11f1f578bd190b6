"""Core data models for the game portal.

This module contains the Pydantic models used throughout the application
for representing catalog games, categories and curated recommendation records.

The JSON data files and the HTTP API use camelCase field names
(``gameId``, ``isActive``, ``viewCount``); the models expose snake_case
attributes and accept either spelling on input.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serializing to camelCase while accepting snake_case input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GameType(str, Enum):
    """How a game is embedded on its page."""

    IFRAME = "iframe"
    EXTERNAL = "external"
    EMBED = "embed"


class GameData(CamelModel):
    """A playable game in the catalog.

    The recommendation layer only reads games; writes go through the
    catalog service, which owns the ``games.json`` data file.
    """

    id: str = Field(..., min_length=1, description="Unique slug of the game")
    name: str = Field(..., min_length=1, description="Display name")
    description: str = Field(default="", description="Short description")
    thumbnail_url: str = Field(default="", description="Thumbnail image URL")
    category: str = Field(..., description="Category id the game belongs to")
    tags: list[str] = Field(default_factory=list, description="Free-form tags")
    rating: float = Field(default=0.0, ge=0, le=5, description="Average rating (0-5)")
    play_count: int = Field(default=0, ge=0, description="Number of plays")
    view_count: int = Field(default=0, ge=0, description="Number of page views")
    developer: Optional[str] = Field(None, description="Developer or studio")
    release_date: str = Field(default="", description="Release date or year")
    added_date: str = Field(default="", description="ISO date the game was added")
    is_active: bool = Field(default=True, description="Whether the game is listed")
    is_featured: bool = Field(default=False, description="Whether the game is featured")
    game_type: GameType = Field(default=GameType.IFRAME, description="Embedding mode")
    game_url: Optional[str] = Field(None, description="URL loaded in the iframe")
    external_url: Optional[str] = Field(None, description="Link for external games")
    embed_code: Optional[str] = Field(None, description="Raw embed HTML")
    controls: list[str] = Field(default_factory=list)
    platforms: list[str] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=list)
    features: list[str] = Field(default_factory=list)


class Category(CamelModel):
    """A game category shown in navigation."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: str = ""
    icon: str = ""
    color: str = ""
    is_active: bool = True


class RecommendedGame(CamelModel):
    """A curated pointer from the recommendation list to a catalog game.

    Lower ``priority`` means higher precedence. Priorities may have gaps
    or ties; readers sort stably and never compact them.
    """

    id: str = Field(..., min_length=1, description="Recommendation record id")
    game_id: str = Field(..., min_length=1, description="Referenced catalog game id")
    priority: int = Field(..., ge=1, description="Display rank, 1 is first")
    is_active: bool = Field(default=True, description="Eligible for display")
    added_date: str = Field(default="", description="ISO date of creation")


class RecommendationStats(CamelModel):
    """Aggregate counts over all recommendation records."""

    total: int = 0
    active: int = 0
    inactive: int = 0
    category_distribution: dict[str, int] = Field(default_factory=dict)
