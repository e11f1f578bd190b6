"""Application settings read from the environment.

Values come from process environment variables, optionally seeded from a
``.env`` file via python-dotenv. Numeric values are validated eagerly so a
misconfigured deployment fails at startup rather than on first request.
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BACKEND_DIR = Path(__file__).resolve().parent.parent
DEFAULT_DATA_DIR = BACKEND_DIR / "data"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for the portal backend."""

    data_dir: Path = DEFAULT_DATA_DIR
    catalog_url: str | None = None
    cache_default_ttl: float = 300.0  # 5 minutes
    cache_cleanup_interval: float = 600.0  # 10 minutes
    http_timeout: float = 10.0
    log_level: str = "INFO"
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])

    @property
    def games_file(self) -> Path:
        return self.data_dir / "games.json"

    @property
    def categories_file(self) -> Path:
        return self.data_dir / "categories.json"

    @property
    def recommendations_file(self) -> Path:
        return self.data_dir / "recommended-games.json"

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("CORS_ORIGINS", "http://localhost:3000")
        return cls(
            data_dir=Path(os.getenv("DATA_DIR") or DEFAULT_DATA_DIR),
            catalog_url=os.getenv("CATALOG_URL") or None,
            cache_default_ttl=_env_float("CACHE_DEFAULT_TTL_SECONDS", 300.0),
            cache_cleanup_interval=_env_float("CACHE_CLEANUP_INTERVAL_SECONDS", 600.0),
            http_timeout=_env_float("HTTP_TIMEOUT_SECONDS", 10.0),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
