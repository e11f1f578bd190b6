"""API routes for the game portal.

Public endpoints serve the catalog and the homepage/game-page recommendation
lists; admin endpoints manage the curated recommendation list and expose the
cache's housekeeping operations.

Failed lookups (404) and rejected admin requests (400) return
``success: false`` with an ``AppError`` in the envelope. Storage failures
surface through the global exception handlers in ``main.py``.
"""

import logging
from enum import Enum
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field

from app.config import get_settings
from app.models import (
    AppError,
    CamelModel,
    Category,
    ErrorCode,
    GameData,
    RecommendationStats,
    RecommendedGame,
)
from app.services import (
    InMemoryCacheService,
    JsonCatalogService,
    JsonRecommendationStore,
    RecommendationService,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# Service instances
_cache_service: InMemoryCacheService | None = None
_catalog_service: JsonCatalogService | None = None
_recommendation_service: RecommendationService | None = None


def get_cache_service() -> InMemoryCacheService:
    global _cache_service
    if _cache_service is None:
        _cache_service = InMemoryCacheService(default_ttl=get_settings().cache_default_ttl)
    return _cache_service


def get_catalog_service() -> JsonCatalogService:
    global _catalog_service
    if _catalog_service is None:
        settings = get_settings()
        _catalog_service = JsonCatalogService(
            games_file=settings.games_file,
            categories_file=settings.categories_file,
            cache=get_cache_service(),
            catalog_url=settings.catalog_url,
            timeout=settings.http_timeout,
        )
    return _catalog_service


def get_recommendation_service() -> RecommendationService:
    global _recommendation_service
    if _recommendation_service is None:
        store = JsonRecommendationStore(get_settings().recommendations_file, get_cache_service())
        _recommendation_service = RecommendationService(get_catalog_service(), store)
    return _recommendation_service


def _error(code: ErrorCode, message: str, user_message: str) -> AppError:
    return AppError(code=code, message=message, user_message=user_message)


def _game_not_found(game_id: str) -> AppError:
    return _error(ErrorCode.GAME_NOT_FOUND, f"Unknown game id: {game_id}", "Game not found.")


# Request/Response models
class GamesResponse(BaseModel):
    """Response model for game lists."""
    success: bool
    games: list[GameData] = Field(default_factory=list)
    error: Optional[AppError] = None


class GameResponse(BaseModel):
    """Response model for a single game."""
    success: bool
    game: Optional[GameData] = None
    error: Optional[AppError] = None


class CategoriesResponse(BaseModel):
    success: bool
    categories: list[Category] = Field(default_factory=list)


class RecommendationMode(str, Enum):
    """Which selection strategy feeds a recommendation list."""

    MIXED = "mixed"
    MANUAL = "manual"
    RANDOM = "random"


class RecommendationsResponse(BaseModel):
    """Response model for curated record listings (admin)."""
    success: bool
    recommendations: list[RecommendedGame] = Field(default_factory=list)
    error: Optional[AppError] = None


class RecommendationStatsResponse(BaseModel):
    success: bool
    stats: RecommendationStats


class MutationResponse(BaseModel):
    """Outcome of an admin mutation."""
    success: bool
    error: Optional[AppError] = None


class AddRecommendationRequest(CamelModel):
    """Request model for recommending a game."""
    game_id: str = Field(..., min_length=1)
    priority: Optional[int] = None


class UpdateRecommendationRequest(CamelModel):
    """Partial update of a recommendation record."""
    priority: Optional[int] = None
    is_active: Optional[bool] = None


class ReorderRecommendationsRequest(CamelModel):
    """Game ids in their new display order."""
    game_ids: list[str] = Field(default_factory=list)


class CacheStatsResponse(BaseModel):
    success: bool
    total_entries: int
    expired_entries: int
    active_entries: int


class CacheCleanupResponse(BaseModel):
    success: bool
    removed: int


def _mutation(
    response: Response, ok: bool, message: str, user_message: str
) -> MutationResponse:
    if ok:
        return MutationResponse(success=True)
    response.status_code = status.HTTP_400_BAD_REQUEST
    return MutationResponse(
        success=False, error=_error(ErrorCode.INVALID_INPUT, message, user_message)
    )


# ─── Catalog ───

@router.get("/games", response_model=GamesResponse)
async def list_games(
    category: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1),
    catalog: JsonCatalogService = Depends(get_catalog_service),
) -> GamesResponse:
    """List active games, optionally restricted to one category."""
    if category:
        games = await catalog.get_games_by_category(category, limit)
    else:
        games = await catalog.get_all_games()
        games = games[:limit] if limit else games
    return GamesResponse(success=True, games=games)


@router.get("/games/search", response_model=GamesResponse)
async def search_games(
    q: str = Query(..., min_length=1),
    limit: Optional[int] = Query(None, ge=1),
    catalog: JsonCatalogService = Depends(get_catalog_service),
) -> GamesResponse:
    return GamesResponse(success=True, games=await catalog.search_games(q, limit))


@router.get("/games/hot", response_model=GamesResponse)
async def hot_games(
    limit: int = Query(8, ge=1, le=50),
    catalog: JsonCatalogService = Depends(get_catalog_service),
) -> GamesResponse:
    return GamesResponse(success=True, games=await catalog.get_hot_games(limit))


@router.get("/games/new", response_model=GamesResponse)
async def new_games(
    limit: int = Query(8, ge=1, le=50),
    catalog: JsonCatalogService = Depends(get_catalog_service),
) -> GamesResponse:
    return GamesResponse(success=True, games=await catalog.get_new_games(limit))


@router.get("/games/featured", response_model=GamesResponse)
async def featured_games(
    limit: int = Query(8, ge=1, le=50),
    catalog: JsonCatalogService = Depends(get_catalog_service),
) -> GamesResponse:
    return GamesResponse(success=True, games=await catalog.get_featured_games(limit))


@router.get("/games/{game_id}", response_model=GameResponse)
async def get_game(
    game_id: str,
    response: Response,
    catalog: JsonCatalogService = Depends(get_catalog_service),
) -> GameResponse:
    """Get a single active game and count the page view."""
    game = await catalog.get_game_by_id(game_id)
    if game is None:
        response.status_code = status.HTTP_404_NOT_FOUND
        return GameResponse(success=False, error=_game_not_found(game_id))
    await catalog.record_view(game_id)
    return GameResponse(success=True, game=game)


@router.get("/games/{game_id}/related", response_model=GamesResponse)
async def related_games(
    game_id: str,
    response: Response,
    limit: int = Query(6, ge=1, le=50),
    recommendations: RecommendationService = Depends(get_recommendation_service),
    catalog: JsonCatalogService = Depends(get_catalog_service),
) -> GamesResponse:
    """Games most relevant to ``game_id`` (same category, shared tags, rating, views)."""
    if await catalog.get_game_by_id(game_id) is None:
        response.status_code = status.HTTP_404_NOT_FOUND
        return GamesResponse(success=False, error=_game_not_found(game_id))
    games = await recommendations.get_related_games(game_id, limit)
    return GamesResponse(success=True, games=games)


@router.get("/categories", response_model=CategoriesResponse)
async def list_categories(
    catalog: JsonCatalogService = Depends(get_catalog_service),
) -> CategoriesResponse:
    return CategoriesResponse(success=True, categories=await catalog.get_all_categories())


# ─── Recommendations (public) ───

@router.get("/recommendations", response_model=GamesResponse)
async def get_recommendations(
    limit: int = Query(8, ge=1, le=50),
    mode: RecommendationMode = RecommendationMode.MIXED,
    recommendations: RecommendationService = Depends(get_recommendation_service),
) -> GamesResponse:
    """Games for the homepage recommendation strip."""
    if mode == RecommendationMode.MANUAL:
        games = await recommendations.get_recommended_games(limit)
    elif mode == RecommendationMode.RANDOM:
        games = await recommendations.get_random_recommended_games(limit)
    else:
        games = await recommendations.get_mixed_recommended_games(limit)
    return GamesResponse(success=True, games=games)


@router.get("/recommendations/category/{category}", response_model=GamesResponse)
async def recommendations_by_category(
    category: str,
    limit: Optional[int] = Query(None, ge=1),
    recommendations: RecommendationService = Depends(get_recommendation_service),
) -> GamesResponse:
    games = await recommendations.get_recommendations_by_category(category, limit)
    return GamesResponse(success=True, games=games)


@router.get("/recommendations/top-rated", response_model=GamesResponse)
async def recommendations_by_rating(
    min_rating: float = Query(4.0, ge=0, le=5),
    limit: Optional[int] = Query(None, ge=1),
    recommendations: RecommendationService = Depends(get_recommendation_service),
) -> GamesResponse:
    games = await recommendations.get_recommendations_by_rating(min_rating, limit)
    return GamesResponse(success=True, games=games)


# ─── Recommendations (admin) ───

@router.get("/admin/recommendations", response_model=RecommendationsResponse)
async def list_recommendation_records(
    recommendations: RecommendationService = Depends(get_recommendation_service),
) -> RecommendationsResponse:
    return RecommendationsResponse(
        success=True, recommendations=await recommendations.get_all_recommendations()
    )


@router.get("/admin/recommendations/stats", response_model=RecommendationStatsResponse)
async def recommendation_stats(
    recommendations: RecommendationService = Depends(get_recommendation_service),
) -> RecommendationStatsResponse:
    return RecommendationStatsResponse(
        success=True, stats=await recommendations.get_recommendation_stats()
    )


@router.post("/admin/recommendations", response_model=MutationResponse)
async def add_recommendation(
    request: AddRecommendationRequest,
    response: Response,
    recommendations: RecommendationService = Depends(get_recommendation_service),
) -> MutationResponse:
    ok = await recommendations.add_recommendation(request.game_id, request.priority)
    return _mutation(
        response,
        ok,
        f"Cannot recommend {request.game_id}",
        "Game not found, inactive, already recommended, or priority below 1.",
    )


@router.post("/admin/recommendations/reorder", response_model=MutationResponse)
async def reorder_recommendations(
    request: ReorderRecommendationsRequest,
    response: Response,
    recommendations: RecommendationService = Depends(get_recommendation_service),
) -> MutationResponse:
    ok = await recommendations.reorder_recommendations(request.game_ids)
    return _mutation(response, ok, "Reorder failed", "Could not reorder recommendations.")


@router.post("/admin/recommendations/activate-all", response_model=MutationResponse)
async def activate_all(
    response: Response,
    recommendations: RecommendationService = Depends(get_recommendation_service),
) -> MutationResponse:
    ok = await recommendations.activate_all_recommendations()
    return _mutation(response, ok, "Activate all failed", "Could not activate recommendations.")


@router.post("/admin/recommendations/deactivate-all", response_model=MutationResponse)
async def deactivate_all(
    response: Response,
    recommendations: RecommendationService = Depends(get_recommendation_service),
) -> MutationResponse:
    ok = await recommendations.deactivate_all_recommendations()
    return _mutation(response, ok, "Deactivate all failed", "Could not deactivate recommendations.")


@router.put("/admin/recommendations/{recommendation_id}", response_model=MutationResponse)
async def update_recommendation(
    recommendation_id: str,
    request: UpdateRecommendationRequest,
    response: Response,
    recommendations: RecommendationService = Depends(get_recommendation_service),
) -> MutationResponse:
    ok = await recommendations.update_recommended_game(
        recommendation_id, priority=request.priority, is_active=request.is_active
    )
    return _mutation(
        response,
        ok,
        f"Cannot update {recommendation_id}",
        "Recommendation not found or priority below 1.",
    )


@router.post("/admin/recommendations/{game_id}/move-up", response_model=MutationResponse)
async def move_up(
    game_id: str,
    response: Response,
    recommendations: RecommendationService = Depends(get_recommendation_service),
) -> MutationResponse:
    ok = await recommendations.move_recommendation_up(game_id)
    return _mutation(response, ok, f"Cannot move {game_id} up", "Already at the top.")


@router.post("/admin/recommendations/{game_id}/move-down", response_model=MutationResponse)
async def move_down(
    game_id: str,
    response: Response,
    recommendations: RecommendationService = Depends(get_recommendation_service),
) -> MutationResponse:
    ok = await recommendations.move_recommendation_down(game_id)
    return _mutation(response, ok, f"Cannot move {game_id} down", "Already at the bottom.")


@router.post("/admin/recommendations/{game_id}/toggle", response_model=MutationResponse)
async def toggle_recommendation(
    game_id: str,
    response: Response,
    recommendations: RecommendationService = Depends(get_recommendation_service),
) -> MutationResponse:
    ok = await recommendations.toggle_recommendation_status(game_id)
    return _mutation(response, ok, f"{game_id} is not recommended", "Recommendation not found.")


@router.delete("/admin/recommendations/{game_id}", response_model=MutationResponse)
async def remove_recommendation(
    game_id: str,
    response: Response,
    recommendations: RecommendationService = Depends(get_recommendation_service),
) -> MutationResponse:
    ok = await recommendations.remove_recommendation(game_id)
    return _mutation(response, ok, f"{game_id} is not recommended", "Recommendation not found.")


@router.delete("/admin/recommendations", response_model=MutationResponse)
async def clear_recommendations(
    response: Response,
    recommendations: RecommendationService = Depends(get_recommendation_service),
) -> MutationResponse:
    ok = await recommendations.clear_all_recommendations()
    return _mutation(response, ok, "Clear failed", "Could not clear recommendations.")


# ─── Cache housekeeping ───

@router.get("/admin/cache/stats", response_model=CacheStatsResponse)
async def cache_stats(
    cache: InMemoryCacheService = Depends(get_cache_service),
) -> CacheStatsResponse:
    stats = cache.get_stats()
    return CacheStatsResponse(
        success=True,
        total_entries=stats.total_entries,
        expired_entries=stats.expired_entries,
        active_entries=stats.active_entries,
    )


@router.post("/admin/cache/cleanup", response_model=CacheCleanupResponse)
async def cache_cleanup(
    cache: InMemoryCacheService = Depends(get_cache_service),
) -> CacheCleanupResponse:
    return CacheCleanupResponse(success=True, removed=cache.cleanup())


@router.post("/admin/cache/clear", response_model=MutationResponse)
async def cache_clear(
    cache: InMemoryCacheService = Depends(get_cache_service),
) -> MutationResponse:
    cache.clear()
    logger.info("[CACHE] Cleared by admin request")
    return MutationResponse(success=True)
