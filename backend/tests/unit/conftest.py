"""Shared fixtures for unit tests."""

import json
from pathlib import Path
from typing import Callable

import pytest

from app.models import GameData


class FakeClock:
    """Manually advanced time source for cache tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_game() -> Callable[..., GameData]:
    def _make(
        game_id: str,
        category: str = "puzzle",
        tags: list[str] | None = None,
        rating: float = 4.0,
        view_count: int = 0,
        is_active: bool = True,
        **extra,
    ) -> GameData:
        return GameData(
            id=game_id,
            name=game_id.replace("-", " ").title(),
            category=category,
            tags=tags or [],
            rating=rating,
            view_count=view_count,
            is_active=is_active,
            **extra,
        )

    return _make


@pytest.fixture
def data_dir(tmp_path: Path, make_game) -> Path:
    """A data directory seeded with a small catalog and two categories."""
    games = [
        make_game("alpha", category="puzzle", tags=["logic"], rating=4.5, view_count=300,
                  added_date="2024-01-01", is_featured=True, description="Slide tiles"),
        make_game("bravo", category="puzzle", tags=["words"], rating=3.8, view_count=900,
                  added_date="2024-03-01", developer="Quiet Owl"),
        make_game("charlie", category="action", tags=["arcade"], rating=4.9, view_count=100,
                  added_date="2024-02-01"),
        make_game("delta", category="action", tags=["arcade"], rating=2.0, view_count=50,
                  added_date="2024-04-01", is_active=False),
    ]
    (tmp_path / "games.json").write_text(
        json.dumps([g.model_dump(mode="json", by_alias=True) for g in games]),
        encoding="utf-8",
    )
    (tmp_path / "categories.json").write_text(
        json.dumps([
            {"id": "puzzle", "name": "Puzzle", "isActive": True},
            {"id": "action", "name": "Action", "isActive": True},
            {"id": "sports", "name": "Sports", "isActive": False},
        ]),
        encoding="utf-8",
    )
    return tmp_path
