"""Response cache interface — depends only on core.models.CacheEntry."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any

from lawdesk.core.models import CacheEntry


def make_cache_key(method: str, url: str, body: Any = None) -> str:
    """Deterministic key from request shape: ``METHOD-url-body``."""
    body_str = "" if body is None else json.dumps(body, sort_keys=True, separators=(",", ":"), default=str)
    return f"{method.upper()}-{url}-{body_str}"


class ResponseCache(ABC):
    """Key -> (value, stored_at) store for GET responses.

    There is no per-resource invalidation: writes to a resource do not
    evict cached GETs of it. Callers that need a refresh use ``clear()``.
    """

    @abstractmethod
    def get(self, key: str) -> CacheEntry | None: ...

    @abstractmethod
    def set(self, key: str, value: Any) -> CacheEntry: ...

    @abstractmethod
    def evict(self, key: str) -> None:
        """Drop one expired entry (lazy TTL eviction)."""

    @abstractmethod
    def clear(self) -> None: ...

    @abstractmethod
    def now(self) -> float: ...

    @abstractmethod
    def __len__(self) -> int: ...

    def is_fresh(self, entry: CacheEntry, ttl: float) -> bool:
        return self.now() - entry.stored_at < ttl
