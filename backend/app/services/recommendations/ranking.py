"""Relevance ranking of catalog games against a reference game.

Score for a candidate:
- +50 when it shares the reference's category
- +10 per tag shared with the reference (tags compared as sets)
- + its own rating (0-5)
- + up to 3 for popularity, ``view_count / max view_count in catalog``

Candidates scoring 0 carry no relation signal and are dropped.
"""

from dataclasses import dataclass

from app.models import GameData

SAME_CATEGORY_SCORE = 50.0
SHARED_TAG_SCORE = 10.0
MAX_POPULARITY_BONUS = 3.0


@dataclass
class ScoredGame:
    """A candidate game with its relevance to the reference game."""
    game: GameData
    score: float


def relevance_score(candidate: GameData, reference: GameData, max_views: int) -> float:
    score = 0.0
    if candidate.category == reference.category:
        score += SAME_CATEGORY_SCORE
    shared_tags = set(candidate.tags) & set(reference.tags)
    score += len(shared_tags) * SHARED_TAG_SCORE
    score += candidate.rating
    if max_views > 0:
        score += candidate.view_count / max_views * MAX_POPULARITY_BONUS
    return score


def score_related_games(reference: GameData, catalog: list[GameData]) -> list[ScoredGame]:
    """Score every other active game, best first.

    The sort is stable, so equal scores keep catalog order.
    """
    max_views = max((g.view_count for g in catalog), default=0)
    scored = [
        ScoredGame(game=g, score=relevance_score(g, reference, max_views))
        for g in catalog
        if g.id != reference.id and g.is_active
    ]
    scored = [s for s in scored if s.score > 0]
    scored.sort(key=lambda s: s.score, reverse=True)
    return scored


def rank_related_games(
    reference: GameData, catalog: list[GameData], limit: int = 6
) -> list[GameData]:
    return [s.game for s in score_related_games(reference, catalog)[:limit]]
