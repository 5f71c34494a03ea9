"""Time-bounded in-memory cache of listed catalog items per account."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable

from ..models import CatalogItem

logger = logging.getLogger(__name__)


def catalog_cache_key(id_prefix: str, store_token: str) -> str:
    return f"{id_prefix}{store_token}"


@dataclass(frozen=True, slots=True)
class CacheEntry:
    items: tuple[CatalogItem, ...]
    written_at: float


class CatalogCache:
    """Maps a cache key to the last listing written for it.

    Entries expire once ``lifetime`` seconds have passed: a read drops its own
    stale entry and every write sweeps out all stale entries. Writes always
    replace the whole entry; concurrent misses for one key each fetch and the
    last write wins.
    """

    def __init__(
        self,
        lifetime: float = 600,
        *,
        clock: Callable[[], float] = time.monotonic,
        name: str = "catalog",
    ):
        self._lifetime = lifetime
        self._clock = clock
        self._name = name
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> tuple[tuple[CatalogItem, ...], bool]:
        entry = self._entries.get(key)
        if entry is None:
            return (), False
        if self._clock() - entry.written_at >= self._lifetime:
            # Another writer may have replaced the entry in the meantime.
            if self._entries.get(key) is entry:
                self._entries.pop(key, None)
            logger.debug("%s cache entry expired", self._name)
            return (), False
        return entry.items, True

    def put(self, key: str, items: Iterable[CatalogItem]) -> None:
        now = self._clock()
        self._prune_expired(now)
        self._entries[key] = CacheEntry(items=tuple(items), written_at=now)

    def _prune_expired(self, now: float) -> None:
        expired = [
            key
            for key, entry in self._entries.items()
            if now - entry.written_at >= self._lifetime
        ]
        for key in expired:
            self._entries.pop(key, None)
        if expired:
            logger.debug("Pruned %d expired %s cache entries", len(expired), self._name)

    def __len__(self) -> int:
        return len(self._entries)
