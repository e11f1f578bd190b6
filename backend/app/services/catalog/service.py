"""Game catalog service backed by JSON data files.

The catalog is the read path every page goes through, so each query result
is memoized in the shared cache service under a key built from the query
name and its parameters (``games-category-puzzle-8``). Writes go to the
``games.json`` file and then drop every catalog key from the cache.

Loading strategy:
1. If a remote catalog URL is configured, fetch the games array from it
2. If that fails (network, HTTP status, bad payload), fall back to the local file
3. If the local file cannot be read either, raise CatalogError
"""

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from datetime import date
from pathlib import Path
from typing import Any, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from app.models import CatalogError, Category, GameData
from app.services.cache import InMemoryCacheService

logger = logging.getLogger(__name__)

_games_adapter = TypeAdapter(list[GameData])
_categories_adapter = TypeAdapter(list[Category])

# Keys this service writes; dropped after every catalog mutation.
CATALOG_KEY_PATTERNS = (
    "all-games",
    "game-*",
    "games-*",
    "featured-games-*",
    "hot-games-*",
    "new-games-*",
    "all-categories",
    "category-*",
)


def format_play_count(count: int) -> str:
    """Format a play counter for display (``1.2K``, ``3.4M``, ``1.0B``)."""
    if count >= 1_000_000_000:
        return f"{count / 1_000_000_000:.1f}B"
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}M"
    if count >= 1_000:
        return f"{count / 1_000:.1f}K"
    return str(count)


def generate_game_id(name: str) -> str:
    """Build a URL slug from a game name."""
    slug = re.sub(r"[^a-z0-9\s-]", "", name.lower())
    slug = re.sub(r"\s+", "-", slug)
    return re.sub(r"-+", "-", slug).strip("-")


class CatalogService(ABC):
    """Abstract read interface over the game catalog."""

    @abstractmethod
    async def get_all_games(self) -> list[GameData]:
        """Return every active game in catalog order."""
        pass

    @abstractmethod
    async def get_game_by_id(self, game_id: str) -> Optional[GameData]:
        """Return the active game with this id, or None."""
        pass


class JsonCatalogService(CatalogService):
    """Catalog read from ``games.json`` / ``categories.json``, cached per query."""

    ALL_GAMES_TTL = 5 * 60
    GAME_TTL = 10 * 60
    CATEGORY_GAMES_TTL = 3 * 60
    FEATURED_TTL = 5 * 60
    HOT_TTL = 2 * 60
    NEW_TTL = 5 * 60
    CATEGORIES_TTL = 5 * 60
    CATEGORY_TTL = 10 * 60

    def __init__(
        self,
        games_file: Path,
        categories_file: Path,
        cache: InMemoryCacheService,
        catalog_url: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._games_file = Path(games_file)
        self._categories_file = Path(categories_file)
        self._cache = cache
        self._catalog_url = catalog_url
        self._timeout = timeout
        self._transport = transport
        self._games: list[GameData] | None = None
        self._categories: list[Category] | None = None
        self._load_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()

    # ─── Loading ───

    async def _ensure_loaded(self) -> list[GameData]:
        if self._games is None:
            async with self._load_lock:
                if self._games is None:
                    self._games = await self._load_games()
                    self._categories = await self._load_categories()
        return self._games

    async def _load_games(self) -> list[GameData]:
        if self._catalog_url:
            try:
                games = await self._fetch_remote_games()
                logger.info(f"[CATALOG] Loaded {len(games)} games from {self._catalog_url}")
                return games
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"[CATALOG] Remote catalog failed, using {self._games_file.name}: {e}")

        try:
            raw = await asyncio.to_thread(self._games_file.read_text, encoding="utf-8")
            games = _games_adapter.validate_json(raw)
        except (OSError, ValidationError) as e:
            raise CatalogError(f"Cannot load games from {self._games_file}: {e}") from e
        logger.info(f"[CATALOG] Loaded {len(games)} games from {self._games_file}")
        return games

    async def _fetch_remote_games(self) -> list[GameData]:
        async with httpx.AsyncClient(
            timeout=self._timeout,
            headers={"Cache-Control": "no-cache"},
            transport=self._transport,
        ) as client:
            response = await client.get(self._catalog_url)
            response.raise_for_status()
            # ValidationError subclasses ValueError
            return _games_adapter.validate_python(response.json())

    async def _load_categories(self) -> list[Category]:
        try:
            raw = await asyncio.to_thread(self._categories_file.read_text, encoding="utf-8")
            return _categories_adapter.validate_json(raw)
        except (OSError, ValidationError) as e:
            logger.warning(f"[CATALOG] No categories loaded from {self._categories_file}: {e}")
            return []

    async def reload(self) -> None:
        """Drop loaded data and cached queries; the next read loads again."""
        async with self._load_lock:
            self._games = None
            self._categories = None
        self._invalidate()

    def _invalidate(self) -> None:
        removed = sum(self._cache.invalidate(p) for p in CATALOG_KEY_PATTERNS)
        logger.debug(f"[CATALOG] Invalidated {removed} cached queries")

    async def _active_games(self) -> list[GameData]:
        games = await self._ensure_loaded()
        return [g for g in games if g.is_active]

    # ─── Games ───

    async def get_all_games(self) -> list[GameData]:
        return await self._cache.get_or_fetch(
            "all-games", self._active_games, self.ALL_GAMES_TTL
        )

    async def get_game_by_id(self, game_id: str) -> Optional[GameData]:
        async def fetch() -> Optional[GameData]:
            games = await self._ensure_loaded()
            return next((g for g in games if g.id == game_id and g.is_active), None)

        key = InMemoryCacheService.build_key("game", game_id)
        return await self._cache.get_or_fetch(key, fetch, self.GAME_TTL)

    async def get_games_by_category(
        self, category: str, limit: int | None = None
    ) -> list[GameData]:
        async def fetch() -> list[GameData]:
            games = [g for g in await self._active_games() if g.category == category]
            return games[:limit] if limit else games

        key = InMemoryCacheService.build_key("games-category", category, limit)
        return await self._cache.get_or_fetch(key, fetch, self.CATEGORY_GAMES_TTL)

    async def get_featured_games(self, limit: int = 8) -> list[GameData]:
        async def fetch() -> list[GameData]:
            return [g for g in await self._active_games() if g.is_featured][:limit]

        key = InMemoryCacheService.build_key("featured-games", limit)
        return await self._cache.get_or_fetch(key, fetch, self.FEATURED_TTL)

    async def get_hot_games(self, limit: int = 8) -> list[GameData]:
        """Most viewed active games."""

        async def fetch() -> list[GameData]:
            games = await self._active_games()
            return sorted(games, key=lambda g: g.view_count, reverse=True)[:limit]

        key = InMemoryCacheService.build_key("hot-games", limit)
        return await self._cache.get_or_fetch(key, fetch, self.HOT_TTL)

    async def get_new_games(self, limit: int = 8) -> list[GameData]:
        """Most recently added active games."""

        async def fetch() -> list[GameData]:
            games = await self._active_games()
            # ISO dates sort lexicographically
            return sorted(games, key=lambda g: g.added_date, reverse=True)[:limit]

        key = InMemoryCacheService.build_key("new-games", limit)
        return await self._cache.get_or_fetch(key, fetch, self.NEW_TTL)

    async def search_games(self, query: str, limit: int | None = None) -> list[GameData]:
        term = query.strip().lower()
        if not term:
            return []
        results = [
            g
            for g in await self._active_games()
            if term in g.name.lower()
            or term in g.description.lower()
            or term in g.category.lower()
            or (g.developer and term in g.developer.lower())
            or any(term in tag.lower() for tag in g.tags)
        ]
        return results[:limit] if limit else results

    async def get_games_by_tag(self, tag: str, limit: int | None = None) -> list[GameData]:
        games = [g for g in await self._active_games() if tag in g.tags]
        return games[:limit] if limit else games

    # ─── Categories ───

    async def get_all_categories(self) -> list[Category]:
        async def fetch() -> list[Category]:
            await self._ensure_loaded()
            return [c for c in self._categories or [] if c.is_active]

        return await self._cache.get_or_fetch("all-categories", fetch, self.CATEGORIES_TTL)

    async def get_category_by_id(self, category_id: str) -> Optional[Category]:
        async def fetch() -> Optional[Category]:
            await self._ensure_loaded()
            return next(
                (c for c in self._categories or [] if c.id == category_id and c.is_active),
                None,
            )

        key = InMemoryCacheService.build_key("category", category_id)
        return await self._cache.get_or_fetch(key, fetch, self.CATEGORY_TTL)

    # ─── Statistics ───

    async def record_view(self, game_id: str) -> bool:
        """Increment a game's view counter in memory."""
        game = self._find(await self._ensure_loaded(), game_id)
        if game is None:
            return False
        game.view_count += 1
        logger.debug(f"[CATALOG] Views for {game.name}: {game.view_count}")
        return True

    async def record_play(self, game_id: str) -> bool:
        """Increment a game's play counter in memory."""
        game = self._find(await self._ensure_loaded(), game_id)
        if game is None:
            return False
        game.play_count += 1
        logger.debug(f"[CATALOG] Plays for {game.name}: {game.play_count}")
        return True

    # ─── Admin writes ───

    @staticmethod
    def _find(games: list[GameData], game_id: str) -> Optional[GameData]:
        return next((g for g in games if g.id == game_id), None)

    async def add_game(self, data: dict[str, Any]) -> GameData:
        """Add a game to the catalog and persist it.

        A missing id is derived from the name. Counters start at zero and
        ``added_date`` is today.

        Raises:
            ValueError: If the id is already taken.
            pydantic.ValidationError: If the game data is invalid.
        """
        async with self._write_lock:
            games = await self._ensure_loaded()
            payload = {**data}
            game_id = payload.get("id") or generate_game_id(str(payload.get("name", "")))
            if self._find(games, game_id) is not None:
                raise ValueError(f"Game id already exists: {game_id}")
            payload.update(
                id=game_id,
                addedDate=date.today().isoformat(),
                viewCount=0,
                playCount=0,
            )
            for name in ("added_date", "view_count", "play_count"):
                payload.pop(name, None)
            game = GameData.model_validate(payload)
            games.append(game)
            await self._save(games)
        self._invalidate()
        logger.info(f"[CATALOG] Added game {game.id}")
        return game

    async def update_game(self, game_id: str, updates: dict[str, Any]) -> bool:
        """Apply partial updates to a game. The id itself cannot change."""
        async with self._write_lock:
            games = await self._ensure_loaded()
            current = self._find(games, game_id)
            if current is None:
                return False
            aliases = {name: f.alias or name for name, f in GameData.model_fields.items()}
            merged = current.model_dump(by_alias=True)
            for key, value in updates.items():
                alias = aliases.get(key, key)
                if alias != "id":
                    merged[alias] = value
            updated = GameData.model_validate(merged)
            games[games.index(current)] = updated
            await self._save(games)
        self._invalidate()
        return True

    async def delete_game(self, game_id: str) -> bool:
        """Soft-delete a game by marking it inactive."""
        return await self.update_game(game_id, {"is_active": False})

    async def _save(self, games: list[GameData]) -> None:
        payload = [g.model_dump(mode="json", by_alias=True, exclude_none=True) for g in games]
        text = json.dumps(payload, indent=2, ensure_ascii=False)
        await asyncio.to_thread(self._write_file, self._games_file, text)

    @staticmethod
    def _write_file(path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
