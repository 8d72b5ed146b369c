from __future__ import annotations

import logging
import sqlite3
import struct
from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path
from typing import NamedTuple, Optional

from .config import BotConfig, ConfigError


logger = logging.getLogger(__name__)

_MESSAGE_ID = struct.Struct(">q")


class StorageError(RuntimeError):
    """Raised when the durable cache cannot be read or written."""


class CorrelationKey(NamedTuple):
    sender_id: int
    timestamp: int


def cache_key(key: CorrelationKey) -> str:
    """Physical key shared by every backend: ``"<timestamp>/<sender_id>"``."""
    return f"{key.timestamp}/{key.sender_id}"


class MessageCache(ABC):
    """Maps a (sender, timestamp) fingerprint to a main-group message id.

    Forwarded copies keep the original sender and date but not the message
    id, so every main-group message is remembered under that fingerprint.
    """

    @abstractmethod
    def put(self, key: CorrelationKey, message_id: int) -> None:
        """Store ``message_id`` under ``key``, replacing any previous value."""

    @abstractmethod
    def get(self, key: CorrelationKey) -> Optional[int]:
        """Return the message id stored under ``key`` or ``None``."""

    def close(self) -> None:
        pass


class MemoryCache(MessageCache):
    """Fixed-capacity cache with least-recently-used eviction."""

    def __init__(self, capacity: int = 1024 * 1024) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._entries: "OrderedDict[str, int]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def put(self, key: CorrelationKey, message_id: int) -> None:
        physical = cache_key(key)
        logger.debug("cache set: %s", physical)
        self._entries[physical] = message_id
        self._entries.move_to_end(physical)
        while len(self._entries) > self._capacity:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("cache evict: %s", evicted)

    def get(self, key: CorrelationKey) -> Optional[int]:
        physical = cache_key(key)
        logger.debug("cache get: %s", physical)
        message_id = self._entries.get(physical)
        if message_id is not None:
            self._entries.move_to_end(physical)
        return message_id


class SQLiteCache(MessageCache):
    """Durable cache backed by a single SQLite table.

    Entries are never removed, so the file grows with the traffic of the
    main group. There is no schema version either; a layout change needs a
    fresh file.
    """

    def __init__(self, path: str) -> None:
        self._path = Path(path)
        self._ensure_directory()
        try:
            self._conn = sqlite3.connect(str(self._path))
            with self._conn:
                self._conn.execute(
                    "CREATE TABLE IF NOT EXISTS message_cache ("
                    " key TEXT PRIMARY KEY,"
                    " message_id BLOB NOT NULL"
                    ")"
                )
        except sqlite3.Error as exc:
            raise StorageError(f"cannot open cache database {self._path}: {exc}") from exc

    def _ensure_directory(self) -> None:
        directory = self._path.parent
        if directory and not directory.exists():
            directory.mkdir(parents=True, exist_ok=True)

    def put(self, key: CorrelationKey, message_id: int) -> None:
        physical = cache_key(key)
        logger.debug("cache set: %s", physical)
        try:
            with self._conn:
                self._conn.execute(
                    "INSERT INTO message_cache (key, message_id) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET message_id = excluded.message_id",
                    (physical, _MESSAGE_ID.pack(message_id)),
                )
        except sqlite3.Error as exc:
            raise StorageError(f"cache write {physical}: {exc}") from exc

    def get(self, key: CorrelationKey) -> Optional[int]:
        physical = cache_key(key)
        logger.debug("cache get: %s", physical)
        try:
            row = self._conn.execute(
                "SELECT message_id FROM message_cache WHERE key = ?", (physical,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"cache read {physical}: {exc}") from exc
        if row is None:
            return None
        try:
            (message_id,) = _MESSAGE_ID.unpack(row[0])
        except (struct.error, TypeError) as exc:
            raise StorageError(f"corrupt cache value for {physical}") from exc
        return message_id

    def close(self) -> None:
        self._conn.close()


def build_cache(config: BotConfig) -> MessageCache:
    if config.cache_backend == "memory":
        logger.info("Using in-memory message cache (capacity %s)", config.cache_capacity)
        return MemoryCache(config.cache_capacity)
    if config.cache_backend == "sqlite":
        logger.info("Using SQLite message cache at %s", config.cache_path)
        return SQLiteCache(config.cache_path)
    raise ConfigError(f"Unknown cache backend '{config.cache_backend}'")


__all__ = [
    "CorrelationKey",
    "MessageCache",
    "MemoryCache",
    "SQLiteCache",
    "StorageError",
    "build_cache",
    "cache_key",
]
