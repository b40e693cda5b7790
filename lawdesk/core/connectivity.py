"""Connectivity tracking — feeds the offline short-circuit and the classifier."""

from __future__ import annotations

import time
from collections import deque
from typing import Callable


class ConnectivityMonitor:
    """Tracks the reported online state plus recent network failures.

    ``is_likely_network_issue`` is true when the host reports offline, or
    when at least ``failure_threshold`` network failures happened within
    the last ``window`` seconds.
    """

    def __init__(
        self,
        online: bool = True,
        failure_threshold: int = 3,
        window: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._online = online
        self._threshold = failure_threshold
        self._window = window
        self._clock = clock
        self._failures: deque[float] = deque()

    @property
    def online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        self._online = online

    def is_offline(self) -> bool:
        return not self._online

    def record_failure(self) -> None:
        self._failures.append(self._clock())
        self._prune()

    def record_success(self) -> None:
        self._failures.clear()

    def is_likely_network_issue(self) -> bool:
        if not self._online:
            return True
        self._prune()
        return len(self._failures) >= self._threshold

    def _prune(self) -> None:
        cutoff = self._clock() - self._window
        while self._failures and self._failures[0] < cutoff:
            self._failures.popleft()
