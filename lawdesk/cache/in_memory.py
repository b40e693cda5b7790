"""Dict-backed response cache, scoped to the process lifetime."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from lawdesk.cache.interface import ResponseCache
from lawdesk.core.models import CacheEntry

logger = logging.getLogger(__name__)


class InMemoryResponseCache(ResponseCache):
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    def set(self, key: str, value: Any) -> CacheEntry:
        entry = CacheEntry(key=key, value=value, stored_at=self._clock())
        self._entries[key] = entry
        return entry

    def evict(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
        logger.info("API response cache cleared")

    def now(self) -> float:
        return self._clock()

    def __len__(self) -> int:
        return len(self._entries)
