"""StreamQuery — accumulates a streamed AI answer for progressive display."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from lawdesk.core.cancellation import CancellationToken
from lawdesk.core.models import AIQueryRequest, ChunkType, SourceCitation, StreamChunk, TokenUsage
from lawdesk.core.streaming import StreamingClient

logger = logging.getLogger(__name__)


class StreamError(Exception):
    """The backend (or transport) reported a failure mid-stream."""


class StreamQuery:
    """Consumer state for one streamed query at a time.

    Exposes ``content`` (text so far), ``is_streaming``, ``is_done``,
    ``token_usage``, ``sources`` and ``error``. ``cancel()`` stops the
    stream without recording an error. Use it as an async context manager
    (or call ``close()``) so an open stream is always released::

        async with StreamQuery(client) as q:
            await q.start(request)
            print(q.content)
    """

    def __init__(
        self,
        client: StreamingClient,
        on_update: Callable[[StreamQuery], None] | None = None,
    ) -> None:
        self._client = client
        self._on_update = on_update
        self._token: CancellationToken | None = None
        self.content = ""
        self.is_streaming = False
        self.is_done = False
        self.token_usage: TokenUsage | None = None
        self.sources: list[SourceCitation] = []
        self.error: Exception | None = None

    # -- public API ---------------------------------------------------------

    async def start(self, request: AIQueryRequest) -> str:
        """Stream *request* to completion, cancellation, or failure."""
        self._abort()
        self._clear()
        self.is_streaming = True

        token = CancellationToken()
        self._token = token
        task = asyncio.current_task()

        def _interrupt() -> None:
            # Unblocks a pending read; a cancel from inside the loop is
            # picked up by the per-chunk check instead.
            if task is not None and task is not asyncio.current_task() and not task.done():
                task.cancel()

        token.register(_interrupt)
        stream = self._client.stream_query(request, cancel_token=token)
        try:
            async for chunk in stream:
                if token.is_cancelled():
                    break
                terminal = self._apply(chunk)
                # on_update may have cancelled us
                if terminal or token.is_cancelled():
                    break
        except asyncio.CancelledError:
            if not token.is_cancelled() or task is None:
                raise
            if task.uncancel() > 0:
                raise
            logger.info("Streaming cancelled by user")
        except Exception as exc:
            if token.is_cancelled():
                logger.info("Streaming cancelled by user")
            else:
                self.error = exc
                logger.error("Streaming error: %s", exc)
        finally:
            token.dispose()
            await stream.aclose()
            if self._token is token:
                self._token = None
            if self._token is None:
                self.is_streaming = False
            self._notify()
        return self.content

    def cancel(self) -> bool:
        """Abort the running stream. Returns False if nothing was running."""
        if self._token is None:
            return False
        self._abort()
        self.is_streaming = False
        self._notify()
        return True

    def reset(self) -> None:
        self._abort()
        self._clear()
        self._notify()

    def close(self) -> None:
        """Release any open stream (teardown finalizer)."""
        self._abort()

    async def __aenter__(self) -> StreamQuery:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    # -- internals ----------------------------------------------------------

    def _apply(self, chunk: StreamChunk) -> bool:
        """Fold one chunk into the state. Returns True when terminal."""
        if chunk.type == ChunkType.ERROR or chunk.error is not None:
            raise StreamError(chunk.error or "Unknown streaming error")

        if chunk.replaces_content:
            if chunk.content:
                self.content = chunk.content
            self.is_done = True
            self._notify()
            return True

        if chunk.content:
            self.content += chunk.content

        if chunk.done:
            self.is_done = True
            if chunk.token_usage is not None:
                self.token_usage = chunk.token_usage
            if chunk.sources:
                self.sources = [
                    SourceCitation(
                        id=f"source-{index}",
                        content=source.content,
                        metadata=source.metadata,
                        similarity_score=source.similarity_score,
                    )
                    for index, source in enumerate(chunk.sources)
                ]
            self._notify()
            return True

        self._notify()
        return False

    def _abort(self) -> None:
        token, self._token = self._token, None
        if token is not None:
            token.cancel()

    def _clear(self) -> None:
        self.content = ""
        self.is_streaming = False
        self.is_done = False
        self.token_usage = None
        self.sources = []
        self.error = None

    def _notify(self) -> None:
        if self._on_update is None:
            return
        try:
            self._on_update(self)
        except Exception:
            logger.exception("stream update callback failed")
