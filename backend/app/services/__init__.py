"""Game Portal Services.

Service layer components:
- Cache: in-process TTL cache with stale-while-revalidate fetching
- Catalog: cache-backed access to games and categories (JSON files or remote URL)
- Recommendations: curated/random/related selection and record persistence
"""

from .cache import CacheService, CacheStats, InMemoryCacheService
from .catalog import CatalogService, JsonCatalogService, format_play_count
from .recommendations import (
    JsonRecommendationStore,
    RecommendationService,
    RecommendationStore,
    rank_related_games,
)

__all__ = [
    # Cache
    "CacheService",
    "CacheStats",
    "InMemoryCacheService",
    # Catalog
    "CatalogService",
    "JsonCatalogService",
    "format_play_count",
    # Recommendations
    "JsonRecommendationStore",
    "RecommendationService",
    "RecommendationStore",
    "rank_related_games",
]
