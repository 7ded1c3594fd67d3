"""Configuration management for Pokedex."""

import os
from enum import Enum
from pathlib import Path

from pydantic import BaseModel


def _default_home() -> Path:
    return Path(os.getenv("POKEDEX_HOME", str(Path.home() / ".pokedex")))


class Platform(str, Enum):
    """Platform capability flag used to pick the favorites backend."""

    NATIVE = "native"  # SQLite table
    WEB = "web"  # JSON array in a key-value store


class Config(BaseModel):
    """Application configuration."""

    # Paths
    data_dir: Path = _default_home()
    db_path: Path = _default_home() / "pokedex.db"
    keystore_dir: Path = _default_home() / "keystore"

    platform: Platform = Platform.NATIVE

    # PokeAPI settings
    pokeapi_base_url: str = "https://pokeapi.co/api/v2"
    request_timeout: float = 10.0
    connect_timeout: float = 5.0

    # Freshness windows (seconds)
    list_stale_time: float = 5 * 60
    detail_stale_time: float = 10 * 60
    evolution_stale_time: float = 10 * 60
    favorites_stale_time: float = 0

    # Retry policy for transient network failures
    network_retries: int = 1
    retry_delay: float = 0.5

    # Favorite stats fetch at most this many details
    stats_detail_cap: int = 25

    default_page_size: int = 20


# Global config instance
config = Config()
