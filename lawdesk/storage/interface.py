"""Key-value port for state that must survive a reload/restart."""

from __future__ import annotations

from abc import ABC, abstractmethod


class KeyValueStore(ABC):
    """Synchronous string store.

    Kept synchronous so a read-then-write (check-and-set) never yields to
    the event loop in between.
    """

    @abstractmethod
    def get(self, key: str) -> str | None: ...

    @abstractmethod
    def set(self, key: str, value: str) -> None: ...

    @abstractmethod
    def remove(self, key: str) -> None: ...
