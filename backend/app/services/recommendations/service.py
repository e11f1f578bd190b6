"""Recommendation service: curated, random and related game selection.

Display reads combine three sources:
- Manual picks: active recommendation records in priority order, resolved
  against the catalog (records pointing at deleted games are skipped)
- Random filler: Fisher-Yates shuffle of the catalog, sampled without
  replacement and never repeating a manual pick
- Related games: relevance ranking against a reference game (see ranking.py)

Admin mutations report rejected requests by returning False; only storage
failures raise.
"""

import asyncio
import logging
import random
import time
from collections import Counter
from datetime import date
from typing import Callable, Optional
from uuid import uuid4

from app.models import GameData, RecommendationStats, RecommendedGame
from app.services.catalog import CatalogService
from app.services.recommendations.ranking import rank_related_games
from app.services.recommendations.store import RecommendationStore

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_LIMIT = 8
DEFAULT_RELATED_LIMIT = 6


def _new_recommendation_id() -> str:
    return f"rec_{int(time.time() * 1000)}_{uuid4().hex[:6]}"


def _by_priority(records: list[RecommendedGame]) -> list[RecommendedGame]:
    # Stable: ties keep insertion order, gaps are left alone
    return sorted(records, key=lambda r: r.priority)


class RecommendationService:
    """Selects games for display and manages the curated recommendation list.

    Attributes:
        _catalog: Read access to active games.
        _store: Persistence for recommendation records.
        _rng: Random source for shuffles; seed it for deterministic output.
        _lock: Serializes read-modify-write cycles on the record list.
    """

    def __init__(
        self,
        catalog: CatalogService,
        store: RecommendationStore,
        rng: random.Random | None = None,
    ) -> None:
        self._catalog = catalog
        self._store = store
        self._rng = rng or random.Random()
        self._lock = asyncio.Lock()

    def _shuffled(self, games: list[GameData]) -> list[GameData]:
        shuffled = list(games)
        self._rng.shuffle(shuffled)
        return shuffled

    # ─── Display reads ───

    async def get_all_recommendations(self) -> list[RecommendedGame]:
        return _by_priority(await self._store.list_all())

    async def get_active_recommendations(self) -> list[RecommendedGame]:
        return [r for r in await self.get_all_recommendations() if r.is_active]

    async def get_recommended_games(self, limit: int | None = None) -> list[GameData]:
        """Resolve active recommendations to games, in priority order.

        ``limit`` truncates the record list before resolution, so fewer than
        ``limit`` games come back when some records no longer resolve.
        """
        records = await self.get_active_recommendations()
        if limit is not None:
            records = records[:limit]
        games = await asyncio.gather(
            *(self._catalog.get_game_by_id(r.game_id) for r in records)
        )
        return [g for g in games if g is not None]

    async def get_random_recommended_games(
        self, limit: int = DEFAULT_DISPLAY_LIMIT
    ) -> list[GameData]:
        return self._shuffled(await self._catalog.get_all_games())[:limit]

    async def get_mixed_recommended_games(
        self, limit: int = DEFAULT_DISPLAY_LIMIT
    ) -> list[GameData]:
        """Manual picks first, topped up with random games not already picked."""
        manual: list[GameData] = []
        seen: set[str] = set()
        for game in await self.get_recommended_games():
            if game.id not in seen:
                seen.add(game.id)
                manual.append(game)

        if len(manual) >= limit:
            return manual[:limit]

        available = [g for g in await self._catalog.get_all_games() if g.id not in seen]
        filler = self._shuffled(available)[: limit - len(manual)]
        return manual + filler

    async def get_smart_recommendations(
        self, limit: int = DEFAULT_DISPLAY_LIMIT
    ) -> list[GameData]:
        return await self.get_mixed_recommended_games(limit)

    async def get_recommendations_by_category(
        self, category: str, limit: int | None = None
    ) -> list[GameData]:
        games = [g for g in await self._catalog.get_all_games() if g.category == category]
        return games[:limit] if limit is not None else games

    async def get_recommendations_by_rating(
        self, min_rating: float = 4.0, limit: int | None = None
    ) -> list[GameData]:
        games = [g for g in await self._catalog.get_all_games() if g.rating >= min_rating]
        games.sort(key=lambda g: g.rating, reverse=True)
        return games[:limit] if limit is not None else games

    async def get_related_games(
        self, game_id: str, limit: int = DEFAULT_RELATED_LIMIT
    ) -> list[GameData]:
        reference = await self._catalog.get_game_by_id(game_id)
        if reference is None:
            return []
        return rank_related_games(reference, await self._catalog.get_all_games(), limit)

    async def get_recommendation_stats(self) -> RecommendationStats:
        records = await self._store.list_all()
        active = sum(1 for r in records if r.is_active)
        games = await asyncio.gather(
            *(self._catalog.get_game_by_id(r.game_id) for r in records)
        )
        distribution = Counter(g.category for g in games if g is not None)
        return RecommendationStats(
            total=len(records),
            active=active,
            inactive=len(records) - active,
            category_distribution=dict(distribution),
        )

    # ─── Admin mutations ───

    async def add_recommendation(self, game_id: str, priority: Optional[int] = None) -> bool:
        """Recommend a game.

        Rejected when the game does not exist or is inactive, when it is
        already recommended, or when ``priority`` is below 1. Without an
        explicit priority the record goes after all existing ones.
        """
        if priority is not None and priority < 1:
            logger.info(f"[RECS] Rejected {game_id}: priority {priority} < 1")
            return False

        game = await self._catalog.get_game_by_id(game_id)
        if game is None or not game.is_active:
            logger.info(f"[RECS] Rejected {game_id}: no such active game")
            return False

        async with self._lock:
            records = await self._store.load_for_update()
            if any(r.game_id == game_id for r in records):
                logger.info(f"[RECS] Rejected {game_id}: already recommended")
                return False
            records.append(
                RecommendedGame(
                    id=_new_recommendation_id(),
                    game_id=game_id,
                    priority=priority if priority is not None else len(records) + 1,
                    is_active=True,
                    added_date=date.today().isoformat(),
                )
            )
            await self._store.save_all(records)
        logger.info(f"[RECS] Added {game_id}")
        return True

    async def remove_recommended_game(self, recommendation_id: str) -> bool:
        async with self._lock:
            records = await self._store.load_for_update()
            remaining = [r for r in records if r.id != recommendation_id]
            if len(remaining) == len(records):
                return False
            await self._store.save_all(remaining)
        return True

    async def remove_recommendation(self, game_id: str) -> bool:
        async with self._lock:
            records = await self._store.load_for_update()
            remaining = [r for r in records if r.game_id != game_id]
            if len(remaining) == len(records):
                return False
            await self._store.save_all(remaining)
        return True

    async def update_recommended_game(
        self,
        recommendation_id: str,
        priority: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> bool:
        if priority is not None and priority < 1:
            return False
        return await self._update_record(
            lambda r: r.id == recommendation_id, priority=priority, is_active=is_active
        )

    async def _update_record(
        self,
        match: Callable[[RecommendedGame], bool],
        priority: Optional[int] = None,
        is_active: Optional[bool] = None,
        toggle: bool = False,
    ) -> bool:
        async with self._lock:
            records = await self._store.load_for_update()
            record = next((r for r in records if match(r)), None)
            if record is None:
                return False
            if priority is not None:
                record.priority = priority
            if toggle:
                record.is_active = not record.is_active
            elif is_active is not None:
                record.is_active = is_active
            await self._store.save_all(records)
        return True

    async def update_recommendation_priority(self, game_id: str, priority: int) -> bool:
        if priority < 1:
            return False
        return await self._update_record(lambda r: r.game_id == game_id, priority=priority)

    async def toggle_recommendation_status(self, game_id: str) -> bool:
        return await self._update_record(lambda r: r.game_id == game_id, toggle=True)

    async def reorder_recommendations(self, game_ids: list[str]) -> bool:
        """Re-index priorities from an explicit order: ``game_ids[i]`` gets ``i + 1``.

        Records not named keep their current priority; unknown ids are ignored.
        """
        async with self._lock:
            records = await self._store.load_for_update()
            by_game = {r.game_id: r for r in records}
            for index, game_id in enumerate(game_ids):
                record = by_game.get(game_id)
                if record is not None:
                    record.priority = index + 1
            await self._store.save_all(records)
        return True

    async def move_recommendation_up(self, game_id: str) -> bool:
        """Raise precedence by one priority step; False when already at 1."""
        async with self._lock:
            records = await self._store.load_for_update()
            record = next((r for r in records if r.game_id == game_id), None)
            if record is None or record.priority <= 1:
                return False
            record.priority -= 1
            await self._store.save_all(records)
        return True

    async def move_recommendation_down(self, game_id: str) -> bool:
        """Lower precedence by one priority step; False when already at the maximum."""
        async with self._lock:
            records = await self._store.load_for_update()
            record = next((r for r in records if r.game_id == game_id), None)
            if record is None:
                return False
            if record.priority >= max(r.priority for r in records):
                return False
            record.priority += 1
            await self._store.save_all(records)
        return True

    async def clear_all_recommendations(self) -> bool:
        async with self._lock:
            await self._store.save_all([])
        return True

    async def _set_all_active(self, is_active: bool) -> bool:
        async with self._lock:
            records = await self._store.load_for_update()
            for record in records:
                record.is_active = is_active
            await self._store.save_all(records)
        return True

    async def activate_all_recommendations(self) -> bool:
        return await self._set_all_active(True)

    async def deactivate_all_recommendations(self) -> bool:
        return await self._set_all_active(False)
