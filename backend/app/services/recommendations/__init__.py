"""Recommendation service module.

Provides curated/random/related game selection, relevance ranking and
persistence of recommendation records.
"""

from .ranking import ScoredGame, rank_related_games, relevance_score, score_related_games
from .service import RecommendationService
from .store import JsonRecommendationStore, RecommendationStore

__all__ = [
    "RecommendationService",
    "RecommendationStore",
    "JsonRecommendationStore",
    "ScoredGame",
    "rank_related_games",
    "relevance_score",
    "score_related_games",
]
