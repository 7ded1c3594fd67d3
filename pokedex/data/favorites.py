"""Favorites persistence with a SQLite backend and a key-value backend."""

import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from pydantic import ValidationError

from pokedex.core.errors import StorageError
from pokedex.core.models import FavoriteRecord
from pokedex.utils.config import Config, Platform, config as default_config
from pokedex.utils.helpers import to_timestamp, utc_now

logger = logging.getLogger(__name__)

FAVORITES_KEY = "pokedex_favorites"


class FavoritesStore(ABC):
    """Contract shared by every favorites backend.

    `init_database()` must complete before any other call; calling anything
    else first raises `StorageError("not initialized")`.
    """

    def __init__(self, now: Optional[Callable[[], datetime]] = None):
        self._now = now or utc_now
        self._ready = False

    @property
    def is_ready(self) -> bool:
        return self._ready

    def _ensure_ready(self) -> None:
        if not self._ready:
            raise StorageError("not initialized")

    def _timestamp(self) -> str:
        return to_timestamp(self._now())

    @abstractmethod
    async def init_database(self) -> None:
        """Prepare the backend. Safe to call more than once."""

    @abstractmethod
    async def add_favorite(self, pokemon_id: int, name: str, image_url: str = "") -> None:
        """Insert or replace the favorite with this id."""

    @abstractmethod
    async def remove_favorite(self, pokemon_id: int) -> None:
        """Delete the favorite with this id, if any."""

    @abstractmethod
    async def is_favorite(self, pokemon_id: int) -> bool:
        ...

    @abstractmethod
    async def get_all_favorites(self) -> list[FavoriteRecord]:
        """All favorites, most recently added first."""

    async def close(self) -> None:
        self._ready = False


class SQLiteFavoritesStore(FavoritesStore):
    """Favorites in a single SQLite table, written in WAL mode."""

    def __init__(self, db_path: Path, now: Optional[Callable[[], datetime]] = None):
        super().__init__(now)
        self.db_path = Path(db_path)

    @contextmanager
    def _get_connection(self):
        """Context manager for database connections."""
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open favorites database {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(f"Favorites database error: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    async def init_database(self) -> None:
        if self._ready:
            return
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create {self.db_path.parent}: {e}") from e

        with self._get_connection() as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS favorites (
                    id INTEGER PRIMARY KEY NOT NULL,
                    name TEXT NOT NULL,
                    image_url TEXT DEFAULT '',
                    created_at TEXT NOT NULL
                )
            """)
        self._ready = True
        logger.info("Favorites database ready at %s", self.db_path)

    async def add_favorite(self, pokemon_id: int, name: str, image_url: str = "") -> None:
        self._ensure_ready()
        with self._get_connection() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO favorites (id, name, image_url, created_at)
                VALUES (?, ?, ?, ?)
            """, (pokemon_id, name, image_url or "", self._timestamp()))

    async def remove_favorite(self, pokemon_id: int) -> None:
        self._ensure_ready()
        with self._get_connection() as conn:
            conn.execute("DELETE FROM favorites WHERE id = ?", (pokemon_id,))

    async def is_favorite(self, pokemon_id: int) -> bool:
        self._ensure_ready()
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT id FROM favorites WHERE id = ? LIMIT 1", (pokemon_id,)
            ).fetchone()
            return row is not None

    async def get_all_favorites(self) -> list[FavoriteRecord]:
        self._ensure_ready()
        with self._get_connection() as conn:
            rows = conn.execute("""
                SELECT id, name, image_url, created_at
                FROM favorites
                ORDER BY created_at DESC
            """).fetchall()
            return [self._row_to_favorite(row) for row in rows]

    def _row_to_favorite(self, row: sqlite3.Row) -> FavoriteRecord:
        """Convert database row to FavoriteRecord model."""
        return FavoriteRecord(
            id=row["id"],
            name=row["name"],
            image_url=row["image_url"] or "",
            created_at=row["created_at"],
        )


class KeyValueStorage(ABC):
    """Minimal string key-value store, the local-storage analogue."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove_item(self, key: str) -> None:
        ...


class MemoryKeyValueStorage(KeyValueStorage):
    """Key-value storage that lives as long as the process."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class FileKeyValueStorage(KeyValueStorage):
    """Key-value storage with one file per key under a directory."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Cannot read {path}: {e}") from e

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(value, encoding="utf-8")
            tmp_path.replace(path)
        except OSError as e:
            raise StorageError(f"Cannot write {path}: {e}") from e

    def remove_item(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot remove {self._path(key)}: {e}") from e


class KeyValueFavoritesStore(FavoritesStore):
    """Favorites as one JSON array under a single key.

    Every mutation reads the whole array, changes it and writes it back.
    """

    def __init__(self, storage: KeyValueStorage, now: Optional[Callable[[], datetime]] = None):
        super().__init__(now)
        self.storage = storage

    def _read_all(self) -> list[FavoriteRecord]:
        try:
            # UnicodeDecodeError is a ValueError; I/O failures stay StorageError
            raw = self.storage.get_item(FAVORITES_KEY)
            if not raw:
                return []
            items = json.loads(raw)
            if not isinstance(items, list):
                raise ValueError("favorites payload is not an array")
            return [FavoriteRecord.model_validate(item) for item in items]
        except (ValueError, ValidationError) as e:
            logger.warning("Discarding unreadable favorites data: %s", e)
            return []

    def _write_all(self, items: list[FavoriteRecord]) -> None:
        self.storage.set_item(FAVORITES_KEY, json.dumps([item.model_dump() for item in items]))

    async def init_database(self) -> None:
        self._ready = True

    async def add_favorite(self, pokemon_id: int, name: str, image_url: str = "") -> None:
        self._ensure_ready()
        items = self._read_all()
        record = FavoriteRecord(
            id=pokemon_id, name=name, image_url=image_url or "", created_at=self._timestamp()
        )
        for index, item in enumerate(items):
            if item.id == pokemon_id:
                items[index] = record
                break
        else:
            items.insert(0, record)
        self._write_all(items)

    async def remove_favorite(self, pokemon_id: int) -> None:
        self._ensure_ready()
        items = self._read_all()
        remaining = [item for item in items if item.id != pokemon_id]
        if len(remaining) == len(items):
            return
        if remaining:
            self._write_all(remaining)
        else:
            self.storage.remove_item(FAVORITES_KEY)

    async def is_favorite(self, pokemon_id: int) -> bool:
        self._ensure_ready()
        return any(item.id == pokemon_id for item in self._read_all())

    async def get_all_favorites(self) -> list[FavoriteRecord]:
        self._ensure_ready()
        return sorted(self._read_all(), key=lambda item: item.created_at, reverse=True)


def create_favorites_store(
    platform: Platform,
    cfg: Optional[Config] = None,
    storage: Optional[KeyValueStorage] = None,
) -> FavoritesStore:
    """Pick the favorites backend for a platform."""
    cfg = cfg or default_config
    if platform == Platform.NATIVE:
        return SQLiteFavoritesStore(cfg.db_path)
    if platform == Platform.WEB:
        return KeyValueFavoritesStore(storage or FileKeyValueStorage(cfg.keystore_dir))
    raise ValueError(f"Unknown platform: {platform!r}")
