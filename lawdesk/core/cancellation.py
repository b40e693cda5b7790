"""Cancellation tokens shared by the request engine and the stream consumer."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)

CANCELLED = "cancelled"
TIMEOUT = "timeout"


class CancellationToken:
    """One-shot cancellation signal with cleanup callbacks.

    A child token created with ``parent=`` is cancelled (with the parent's
    reason) when the parent is. ``cancel_after`` schedules a deferred
    cancellation on the running event loop, which is how request timeouts
    are expressed. Call :meth:`dispose` when the guarded operation ends so
    the timer and the parent link are released.
    """

    def __init__(self, parent: CancellationToken | None = None) -> None:
        self._reason: str | None = None
        self._callbacks: list[Callable[[], object]] = []
        self._event = asyncio.Event()
        self._timer: asyncio.TimerHandle | None = None
        self._unlink: Callable[[], None] | None = None
        if parent is not None:
            self._unlink = parent.register(lambda: self.cancel(parent.reason or CANCELLED))

    # -- state --------------------------------------------------------------

    @property
    def reason(self) -> str | None:
        return self._reason

    def is_cancelled(self) -> bool:
        return self._reason is not None

    # -- signalling ---------------------------------------------------------

    def cancel(self, reason: str = CANCELLED) -> None:
        if self._reason is not None:
            return
        self._reason = reason
        self._event.set()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("cancellation callback failed")

    def cancel_after(self, delay: float, reason: str = TIMEOUT) -> None:
        if self._reason is not None:
            return
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay, self.cancel, reason)

    def register(self, callback: Callable[[], object]) -> Callable[[], None]:
        """Run *callback* on cancellation. Returns an unregister function."""
        if self._reason is not None:
            callback()
            return lambda: None
        self._callbacks.append(callback)

        def _unregister() -> None:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

        return _unregister

    # -- waiting ------------------------------------------------------------

    async def wait(self, timeout: float | None = None) -> bool:
        """Wait up to *timeout* seconds. Returns True if cancelled meanwhile."""
        if self._reason is not None:
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def dispose(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._unlink is not None:
            self._unlink()
            self._unlink = None
        self._callbacks.clear()

    def __repr__(self) -> str:
        return f"CancellationToken(reason={self._reason!r})"
