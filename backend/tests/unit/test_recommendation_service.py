"""Unit tests for the recommendation service.

Uses an in-memory catalog and a JSON record store in a temporary directory.
"""

import asyncio
import json
import random
from typing import Optional

import pytest

from app.models import GameData, RecommendationStoreError, RecommendedGame
from app.services.cache import InMemoryCacheService
from app.services.catalog import CatalogService
from app.services.recommendations import JsonRecommendationStore, RecommendationService


class FakeCatalog(CatalogService):
    """Catalog over a fixed list of games."""

    def __init__(self, games: list[GameData]) -> None:
        self.games = games

    async def get_all_games(self) -> list[GameData]:
        return [g for g in self.games if g.is_active]

    async def get_game_by_id(self, game_id: str) -> Optional[GameData]:
        return next((g for g in self.games if g.id == game_id and g.is_active), None)


def _record(game_id: str, priority: int, is_active: bool = True) -> RecommendedGame:
    return RecommendedGame(
        id=f"rec_{game_id}", game_id=game_id, priority=priority, is_active=is_active
    )


@pytest.fixture
def games(make_game) -> list[GameData]:
    return [
        make_game("g1", category="puzzle", rating=4.5, tags=["logic"], view_count=10),
        make_game("g2", category="action", rating=4.0, tags=["arcade"], view_count=20),
        make_game("g3", category="strategy", rating=4.2, tags=["logic"], view_count=30),
        make_game("g4", category="puzzle", rating=3.1, view_count=5),
        make_game("g5", category="action", rating=4.8, view_count=40),
        make_game("off", category="puzzle", rating=5.0, is_active=False),
    ]


@pytest.fixture
def store(tmp_path) -> JsonRecommendationStore:
    return JsonRecommendationStore(tmp_path / "recommended-games.json", InMemoryCacheService())


@pytest.fixture
def service(games, store) -> RecommendationService:
    return RecommendationService(FakeCatalog(games), store, rng=random.Random(7))


class TestDisplayReads:
    """Tests for reads that resolve records to games."""

    @pytest.mark.asyncio
    async def test_recommended_games_in_priority_order(self, service, store) -> None:
        await store.save_all([_record("g3", 2), _record("g1", 1), _record("g2", 3, is_active=False)])
        games = await service.get_recommended_games()
        assert [g.id for g in games] == ["g1", "g3"]

    @pytest.mark.asyncio
    async def test_recommended_games_skip_unresolvable(self, service, store) -> None:
        await store.save_all([_record("deleted", 1), _record("off", 2), _record("g4", 3)])
        assert [g.id for g in await service.get_recommended_games()] == ["g4"]

    @pytest.mark.asyncio
    async def test_limit_applies_before_resolution(self, service, store) -> None:
        await store.save_all([_record("deleted", 1), _record("g1", 2), _record("g2", 3)])
        assert [g.id for g in await service.get_recommended_games(limit=2)] == ["g1"]

    @pytest.mark.asyncio
    async def test_priority_ties_keep_insertion_order(self, service, store) -> None:
        await store.save_all([_record("g2", 1), _record("g1", 1), _record("g3", 1)])
        assert [g.id for g in await service.get_recommended_games()] == ["g2", "g1", "g3"]

    @pytest.mark.asyncio
    async def test_random_games_distinct_and_active(self, service) -> None:
        games = await service.get_random_recommended_games(limit=3)
        ids = [g.id for g in games]
        assert len(ids) == 3
        assert len(set(ids)) == 3
        assert "off" not in ids

    @pytest.mark.asyncio
    async def test_random_games_limit_above_catalog(self, service) -> None:
        assert len(await service.get_random_recommended_games(limit=50)) == 5

    @pytest.mark.asyncio
    async def test_mixed_truncates_manual_when_enough(self, service, store) -> None:
        await store.save_all([_record("g3", 1), _record("g1", 2), _record("g2", 3)])
        games = await service.get_mixed_recommended_games(limit=2)
        assert [g.id for g in games] == ["g3", "g1"]

    @pytest.mark.asyncio
    async def test_mixed_fills_with_random_non_manual(self, service, store) -> None:
        await store.save_all([_record("g5", 1), _record("g2", 2)])
        games = await service.get_mixed_recommended_games(limit=4)
        ids = [g.id for g in games]
        assert ids[:2] == ["g5", "g2"]
        assert len(ids) == 4
        assert len(set(ids)) == 4

    @pytest.mark.asyncio
    async def test_smart_matches_mixed(self, service, store) -> None:
        await store.save_all([_record("g2", 1)])
        games = await service.get_smart_recommendations(limit=3)
        assert games[0].id == "g2"
        assert len({g.id for g in games}) == 3

    @pytest.mark.asyncio
    async def test_mixed_never_duplicates(self, make_game, tmp_path) -> None:
        for n in range(1, 6):
            catalog = FakeCatalog([make_game(f"n{i}") for i in range(n)])
            for m in range(n + 1):
                store = JsonRecommendationStore(tmp_path / f"recs-{n}-{m}.json", InMemoryCacheService())
                await store.save_all([_record(f"n{i}", i + 1) for i in range(m)])
                service = RecommendationService(catalog, store, rng=random.Random(n * 10 + m))
                for limit in range(1, 8):
                    ids = [g.id for g in await service.get_mixed_recommended_games(limit)]
                    assert len(ids) == min(limit, n)
                    assert len(set(ids)) == len(ids)
                    if m <= limit:
                        assert set(f"n{i}" for i in range(m)) <= set(ids)

    @pytest.mark.asyncio
    async def test_by_category(self, service) -> None:
        games = await service.get_recommendations_by_category("puzzle")
        assert [g.id for g in games] == ["g1", "g4"]
        assert len(await service.get_recommendations_by_category("puzzle", limit=1)) == 1

    @pytest.mark.asyncio
    async def test_by_rating_sorted_desc(self, service) -> None:
        games = await service.get_recommendations_by_rating()
        assert [g.id for g in games] == ["g5", "g1", "g3", "g2"]
        top = await service.get_recommendations_by_rating(min_rating=4.3, limit=1)
        assert [g.id for g in top] == ["g5"]

    @pytest.mark.asyncio
    async def test_related_games(self, service) -> None:
        related = await service.get_related_games("g1", limit=2)
        # g4 shares the category; g3 shares a tag
        assert [g.id for g in related] == ["g4", "g3"]

    @pytest.mark.asyncio
    async def test_related_games_unknown_reference(self, service) -> None:
        assert await service.get_related_games("nope") == []

    @pytest.mark.asyncio
    async def test_stats(self, service, store) -> None:
        await store.save_all([
            _record("g1", 1),
            _record("g4", 2, is_active=False),
            _record("g2", 3),
            _record("deleted", 4),
        ])
        stats = await service.get_recommendation_stats()
        assert stats.total == 4
        assert stats.active == 3
        assert stats.inactive == 1
        assert stats.category_distribution == {"puzzle": 2, "action": 1}


class TestAddRecommendation:
    """Tests for add validation."""

    @pytest.mark.asyncio
    async def test_add_valid_game(self, service, store) -> None:
        assert await service.add_recommendation("g1", 1) is True
        records = await store.list_all()
        assert len(records) == 1
        assert records[0].game_id == "g1"
        assert records[0].priority == 1
        assert records[0].is_active is True
        assert records[0].id.startswith("rec_")

    @pytest.mark.asyncio
    async def test_add_persists_camel_case(self, service, store) -> None:
        await service.add_recommendation("g1")
        saved = json.loads(store.path.read_text(encoding="utf-8"))
        assert saved[0]["gameId"] == "g1"
        assert saved[0]["isActive"] is True

    @pytest.mark.asyncio
    async def test_default_priority_goes_last(self, service, store) -> None:
        await service.add_recommendation("g1")
        await service.add_recommendation("g2")
        assert [r.priority for r in await store.list_all()] == [1, 2]

    @pytest.mark.asyncio
    async def test_reject_unknown_game(self, service, store) -> None:
        assert await service.add_recommendation("missing", 1) is False
        assert await store.list_all() == []

    @pytest.mark.asyncio
    async def test_reject_inactive_game(self, service) -> None:
        assert await service.add_recommendation("off", 1) is False

    @pytest.mark.asyncio
    async def test_reject_duplicate(self, service, store) -> None:
        assert await service.add_recommendation("g1", 1) is True
        assert await service.add_recommendation("g1", 2) is False
        assert len(await store.list_all()) == 1

    @pytest.mark.asyncio
    async def test_reject_priority_below_one(self, service) -> None:
        assert await service.add_recommendation("g1", 0) is False
        assert await service.add_recommendation("g1", -3) is False


class TestRecordMutations:
    """Tests for remove/update/reorder/move and bulk operations."""

    @pytest.fixture(autouse=True)
    def _seed(self, store) -> None:
        store.path.write_text(
            json.dumps([
                _record("g1", 1).model_dump(by_alias=True),
                _record("g2", 2).model_dump(by_alias=True),
                _record("g3", 3, is_active=False).model_dump(by_alias=True),
            ]),
            encoding="utf-8",
        )

    async def _priorities(self, store) -> dict[str, int]:
        return {r.game_id: r.priority for r in await store.list_all()}

    @pytest.mark.asyncio
    async def test_remove_by_game(self, service, store) -> None:
        assert await service.remove_recommendation("g2") is True
        assert await service.remove_recommendation("g2") is False
        assert [r.game_id for r in await store.list_all()] == ["g1", "g3"]

    @pytest.mark.asyncio
    async def test_remove_by_record_id(self, service, store) -> None:
        assert await service.remove_recommended_game("rec_g1") is True
        assert await service.remove_recommended_game("rec_unknown") is False

    @pytest.mark.asyncio
    async def test_update_record(self, service, store) -> None:
        assert await service.update_recommended_game("rec_g3", priority=5, is_active=True) is True
        record = next(r for r in await store.list_all() if r.id == "rec_g3")
        assert record.priority == 5
        assert record.is_active is True

    @pytest.mark.asyncio
    async def test_update_rejects_bad_priority_and_unknown(self, service) -> None:
        assert await service.update_recommended_game("rec_g1", priority=0) is False
        assert await service.update_recommended_game("rec_unknown", priority=2) is False

    @pytest.mark.asyncio
    async def test_update_priority_by_game(self, service, store) -> None:
        assert await service.update_recommendation_priority("g2", 9) is True
        assert (await self._priorities(store))["g2"] == 9
        assert await service.update_recommendation_priority("missing", 9) is False

    @pytest.mark.asyncio
    async def test_toggle(self, service, store) -> None:
        assert await service.toggle_recommendation_status("g3") is True
        active = {r.game_id: r.is_active for r in await store.list_all()}
        assert active["g3"] is True
        assert await service.toggle_recommendation_status("missing") is False

    @pytest.mark.asyncio
    async def test_reorder_reindexes(self, service, store) -> None:
        assert await service.reorder_recommendations(["g3", "g1", "g2", "unknown"]) is True
        assert await self._priorities(store) == {"g3": 1, "g1": 2, "g2": 3}

    @pytest.mark.asyncio
    async def test_reorder_partial_keeps_others(self, service, store) -> None:
        await service.reorder_recommendations(["g3"])
        assert await self._priorities(store) == {"g1": 1, "g2": 2, "g3": 1}

    @pytest.mark.asyncio
    async def test_move_up(self, service, store) -> None:
        assert await service.move_recommendation_up("g2") is True
        # Relative step, not a swap: g1 and g2 now tie
        assert await self._priorities(store) == {"g1": 1, "g2": 1, "g3": 3}

    @pytest.mark.asyncio
    async def test_move_up_at_top_is_rejected(self, service, store) -> None:
        before = await self._priorities(store)
        assert await service.move_recommendation_up("g1") is False
        assert await self._priorities(store) == before

    @pytest.mark.asyncio
    async def test_move_down(self, service, store) -> None:
        assert await service.move_recommendation_down("g1") is True
        assert (await self._priorities(store))["g1"] == 2

    @pytest.mark.asyncio
    async def test_move_down_at_bottom_is_rejected(self, service, store) -> None:
        before = await self._priorities(store)
        assert await service.move_recommendation_down("g3") is False
        assert await self._priorities(store) == before

    @pytest.mark.asyncio
    async def test_move_unknown_is_rejected(self, service) -> None:
        assert await service.move_recommendation_up("missing") is False
        assert await service.move_recommendation_down("missing") is False

    @pytest.mark.asyncio
    async def test_bulk_activation(self, service, store) -> None:
        assert await service.activate_all_recommendations() is True
        assert all(r.is_active for r in await store.list_all())
        assert await service.deactivate_all_recommendations() is True
        assert not any(r.is_active for r in await store.list_all())
        assert await service.get_recommended_games() == []

    @pytest.mark.asyncio
    async def test_clear_all(self, service, store) -> None:
        assert await service.clear_all_recommendations() is True
        assert await store.list_all() == []

    @pytest.mark.asyncio
    async def test_get_all_and_active(self, service) -> None:
        assert [r.game_id for r in await service.get_all_recommendations()] == ["g1", "g2", "g3"]
        assert [r.game_id for r in await service.get_active_recommendations()] == ["g1", "g2"]


class GatedStore(JsonRecommendationStore):
    """Store whose next file read can be held open until ``gate`` is set."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.gate: Optional[asyncio.Event] = None
        self.read_held = asyncio.Event()

    async def _read_text(self) -> Optional[str]:
        raw = await super()._read_text()
        if self.gate is not None:
            gate, self.gate = self.gate, None
            self.read_held.set()
            await gate.wait()
        return raw


class TestWritesUnderConcurrentReads:
    """Tests for mutations racing display reads of the same records."""

    @pytest.mark.asyncio
    async def test_background_refresh_does_not_undo_add(self, games, tmp_path, clock) -> None:
        cache = InMemoryCacheService(clock=clock)
        store = GatedStore(tmp_path / "recommended-games.json", cache)
        service = RecommendationService(FakeCatalog(games), store, rng=random.Random(7))

        await service.add_recommendation("g1")
        await service.get_recommended_games()

        # Past the 5s TTL, inside the stale window: the next read refreshes in the background
        clock.advance(7)
        gate = store.gate = asyncio.Event()
        assert [g.id for g in await service.get_recommended_games()] == ["g1"]
        await store.read_held.wait()

        await service.add_recommendation("g2")
        assert not cache.has(JsonRecommendationStore.CACHE_KEY)

        # The held refresh read the file before g2 was written
        gate.set()
        await cache.wait_for_refreshes()
        assert [r.game_id for r in cache.get(JsonRecommendationStore.CACHE_KEY)] == ["g1", "g2"]

        await service.add_recommendation("g3")
        saved = json.loads(store.path.read_text(encoding="utf-8"))
        assert [r["gameId"] for r in saved] == ["g1", "g2", "g3"]

    @pytest.mark.asyncio
    async def test_mutation_refused_when_file_has_invalid_row(self, service, store) -> None:
        store.path.write_text(json.dumps([
            {"id": "rec_1", "gameId": "g1", "priority": 1},
            {"id": "rec_2", "gameId": "g2", "priority": 2},
            {"id": "rec_3", "gameId": "g3", "priority": 0},
        ]), encoding="utf-8")
        before = store.path.read_text(encoding="utf-8")

        with pytest.raises(RecommendationStoreError):
            await service.add_recommendation("g5")
        with pytest.raises(RecommendationStoreError):
            await service.move_recommendation_down("g1")

        assert store.path.read_text(encoding="utf-8") == before
        assert [g.id for g in await service.get_recommended_games()] == ["g1", "g2"]
