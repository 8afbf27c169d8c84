from __future__ import annotations

from asyncio import Lock
import time
from typing import Any

from .config import STATS_CACHE_TTL


class TTLCache:
    """A simple in-memory TTL cache with async-safe access."""

    def __init__(self, ttl_seconds: float = 300.0) -> None:
        self._ttl = ttl_seconds
        self._lock = Lock()
        self._store: dict[Any, tuple[Any, float]] = {}

    async def get(self, key: Any) -> Any | None:
        now = time.monotonic()
        async with self._lock:
            entry = self._store.get(key)
            if not entry:
                return None
            value, expires_at = entry
            if expires_at <= now:
                self._store.pop(key, None)
                return None
            return value

    async def set(self, key: Any, value: Any, ttl_seconds: float | None = None) -> None:
        ttl = self._ttl if ttl_seconds is None else ttl_seconds
        expires_at = time.monotonic() + max(ttl, 0.0)
        async with self._lock:
            if ttl <= 0:
                self._store.pop(key, None)
            else:
                self._store[key] = (value, expires_at)

    async def clear(self) -> None:
        """Drop every entry.

        Any roster or match change can move every player's rating, so writes
        clear the whole cache instead of picking out individual players.
        """

        async with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


stats_cache = TTLCache(ttl_seconds=STATS_CACHE_TTL)
