"""Persistence for curated recommendation records.

Records live in a single JSON array file. Display reads go through the shared
cache with a short TTL so bursts of page requests do not re-read the file;
every write drops the cached copy. Mutations read the file directly with
``load_for_update`` so they never build on a cached or partial view.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from app.models import RecommendationStoreError, RecommendedGame
from app.services.cache import InMemoryCacheService

logger = logging.getLogger(__name__)


class RecommendationStore(ABC):
    """Abstract storage for recommendation records."""

    @abstractmethod
    async def list_all(self) -> list[RecommendedGame]:
        """Return all records in stored order.

        The returned records are copies; mutating them has no effect until
        they are passed to ``save_all``. May be served from a cache.
        """
        pass

    @abstractmethod
    async def load_for_update(self) -> list[RecommendedGame]:
        """Return the current stored records for a read-modify-write cycle.

        Never served from a cache. Raises ``RecommendationStoreError`` when
        the stored data cannot be read in full, so a following ``save_all``
        cannot overwrite records it did not see.
        """
        pass

    @abstractmethod
    async def save_all(self, records: list[RecommendedGame]) -> None:
        """Replace the stored records."""
        pass


class JsonRecommendationStore(RecommendationStore):
    """Recommendation records kept in ``recommended-games.json``.

    Attributes:
        _generation: Count of completed writes. A cached read that overlaps a
            write reads again, so the cache never receives pre-write records.
    """

    CACHE_KEY = "recommended-games"

    def __init__(
        self, path: Path, cache: InMemoryCacheService, ttl_seconds: float = 5.0
    ) -> None:
        self._path = Path(path)
        self._cache = cache
        self._ttl = ttl_seconds
        self._generation = 0

    @property
    def path(self) -> Path:
        return self._path

    async def list_all(self) -> list[RecommendedGame]:
        records = await self._cache.get_or_fetch(self.CACHE_KEY, self._read, self._ttl)
        return [r.model_copy() for r in records]

    async def load_for_update(self) -> list[RecommendedGame]:
        raw = await self._read_text()
        if raw is None:
            return []
        return self._parse(raw, strict=True)

    async def _read(self) -> list[RecommendedGame]:
        while True:
            generation = self._generation
            raw = await self._read_text()
            if generation != self._generation:
                logger.debug(f"[STORE] {self._path.name} changed during read, reading again")
                continue
            return [] if raw is None else self._parse(raw, strict=False)

    async def _read_text(self) -> Optional[str]:
        try:
            return await asyncio.to_thread(self._path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise RecommendationStoreError(f"Cannot read {self._path}: {e}") from e

    def _parse(self, raw: str, strict: bool) -> list[RecommendedGame]:
        """Validate the file row by row.

        Lenient parsing (display reads) logs and skips bad rows, and treats an
        unparseable file as empty. Strict parsing raises on either.
        """
        try:
            rows = json.loads(raw)
            if not isinstance(rows, list):
                raise ValueError("expected a JSON array")
        except ValueError as e:
            if strict:
                raise RecommendationStoreError(f"Cannot parse {self._path}: {e}") from e
            logger.warning(f"[STORE] Ignoring unreadable {self._path.name}: {e}")
            return []

        records: list[RecommendedGame] = []
        for index, row in enumerate(rows):
            try:
                records.append(RecommendedGame.model_validate(row))
            except ValidationError as e:
                if strict:
                    raise RecommendationStoreError(
                        f"Invalid record #{index} in {self._path}: {e}"
                    ) from e
                logger.warning(f"[STORE] Skipping invalid record #{index} in {self._path.name}")
        return records

    async def save_all(self, records: list[RecommendedGame]) -> None:
        payload = [r.model_dump(by_alias=True) for r in records]
        text = json.dumps(payload, indent=2, ensure_ascii=False)
        try:
            await asyncio.to_thread(self._write, text)
        except OSError as e:
            raise RecommendationStoreError(f"Cannot write {self._path}: {e}") from e
        finally:
            self._generation += 1
            self._cache.delete(self.CACHE_KEY)
        logger.debug(f"[STORE] Saved {len(records)} recommendations to {self._path}")

    def _write(self, text: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(text, encoding="utf-8")
