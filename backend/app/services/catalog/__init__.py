"""Catalog service module.

Provides cache-backed read access to the game catalog and the admin write
operations that keep ``games.json`` and the cache consistent.
"""

from .service import (
    CATALOG_KEY_PATTERNS,
    CatalogService,
    JsonCatalogService,
    format_play_count,
    generate_game_id,
)

__all__ = [
    "CATALOG_KEY_PATTERNS",
    "CatalogService",
    "JsonCatalogService",
    "format_play_count",
    "generate_game_id",
]
