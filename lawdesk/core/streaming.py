"""Streaming client for the AI query endpoint (Server-Sent Events framing)."""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator

import httpx
from pydantic import ValidationError

from lawdesk.context import RequestContext
from lawdesk.core.cancellation import CancellationToken
from lawdesk.core.models import (
    AIQueryRequest,
    AIResponse,
    ChunkType,
    ClientOptions,
    StreamChunk,
)
from lawdesk.core.resilient import ResilientApiClient

logger = logging.getLogger(__name__)

STREAM_PATH = "/api/streaming/query"
QUERY_PATH = "/api/query/"


# ---------------------------------------------------------------------------
# Wire decoding
# ---------------------------------------------------------------------------

async def iter_sse_data(lines: AsyncIterator[str]) -> AsyncIterator[str]:
    """Join ``data:`` lines into one payload per event (blank line ends it).

    Other SSE fields (``event:``, ``id:``, comments) are ignored.
    """
    data_lines: list[str] = []
    async for line in lines:
        line = line.rstrip("\r\n")
        if not line:
            if data_lines:
                yield "\n".join(data_lines)
                data_lines = []
            continue
        if line.startswith("data:"):
            value = line[5:]
            data_lines.append(value[1:] if value.startswith(" ") else value)
    if data_lines:
        yield "\n".join(data_lines)


def parse_frame(raw: str) -> StreamChunk | None:
    """Decode one SSE payload into a :class:`StreamChunk`, or None if unusable."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Error parsing streaming chunk: %r", raw[:200])
        return None
    if not isinstance(data, dict):
        logger.warning("Ignoring non-object streaming chunk: %r", raw[:200])
        return None

    try:
        frame_type = data.get("type")
        if frame_type in (ChunkType.WELCOME.value, ChunkType.COMPLETE.value):
            return StreamChunk(
                type=ChunkType(frame_type),
                content=data.get("content"),
                done=True,
                token_usage=data.get("token_usage"),
                sources=data.get("sources"),
            )
        if data.get("error"):
            return StreamChunk(type=ChunkType.ERROR, error=str(data["error"]), done=True)
        return StreamChunk(
            content=data.get("content"),
            done=bool(data.get("done", False)),
            token_usage=data.get("token_usage"),
            sources=data.get("sources"),
            is_general_chat=data.get("is_general_chat"),
        )
    except ValidationError as exc:
        logger.warning("Malformed streaming chunk %r: %s", raw[:200], exc)
        return None


def _error_detail(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict):
        detail = payload.get("detail") or payload.get("message")
        if isinstance(detail, str):
            return detail
        if detail is not None:
            return json.dumps(detail)
    return None


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class StreamingClient:
    """Opens streamed (and single-shot) AI queries.

    ``stream_query`` never raises for transport or HTTP failures: they are
    delivered as a terminal ``error`` chunk so the consumer sees one uniform,
    ordered sequence.
    """

    def __init__(
        self,
        options: ClientOptions | None = None,
        http_client: httpx.AsyncClient | None = None,
        api: ResilientApiClient | None = None,
        context: RequestContext | None = None,
    ) -> None:
        self._options = options or ClientOptions()
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(None, connect=self._options.timeout),
            follow_redirects=True,
        )
        self._api = api or ResilientApiClient(self._options, context=context, http_client=self._http)

    @property
    def api(self) -> ResilientApiClient:
        return self._api

    @staticmethod
    def build_payload(request: AIQueryRequest) -> dict[str, Any]:
        """Adapt the request to the shape the backend expects."""
        documents = list(request.documents)
        history = (
            [turn.model_dump() for turn in request.previous_messages]
            if request.previous_messages is not None
            else None
        )
        return {
            "query": request.query,
            "client_id": request.client_id,
            "document_id": documents[0] if len(documents) == 1 else None,
            "documents": documents,
            "use_rag": request.use_rag,
            "max_tokens": request.max_tokens,
            "system_prompt": request.system_prompt,
            "model": request.model,
            "conversation_id": request.conversation_id,
            "previous_messages": history,
            "conversation_history": history,
        }

    async def stream_query(
        self,
        request: AIQueryRequest,
        cancel_token: CancellationToken | None = None,
    ) -> AsyncIterator[StreamChunk]:
        payload = self.build_payload(request)
        url = f"{self._options.base_url.rstrip('/')}{STREAM_PATH}"
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
            **self._options.headers,
        }
        logger.info(
            "Streaming query: documents=%d use_rag=%s model=%s system_prompt=%s",
            len(request.documents), request.use_rag, request.model, bool(request.system_prompt),
        )

        try:
            async with self._http.stream("POST", url, json=payload, headers=headers) as response:
                if not response.is_success:
                    await response.aread()
                    detail = _error_detail(response) or "Failed to get streaming response"
                    yield StreamChunk(type=ChunkType.ERROR, error=detail, done=True)
                    return

                async for raw in iter_sse_data(response.aiter_lines()):
                    if cancel_token is not None and cancel_token.is_cancelled():
                        return
                    chunk = parse_frame(raw)
                    if chunk is None:
                        continue
                    yield chunk
                    if chunk.is_terminal:
                        return
        except httpx.HTTPError as exc:
            logger.error("Streaming error: %s", exc)
            yield StreamChunk(
                type=ChunkType.ERROR,
                error=str(exc) or exc.__class__.__name__,
                done=True,
            )

    async def query(
        self,
        request: AIQueryRequest,
        cancel_token: CancellationToken | None = None,
    ) -> AIResponse:
        """Single-shot query through the resilient engine (never cached)."""
        raw = await self._api.post(
            QUERY_PATH,
            self.build_payload(request),
            cache=False,
            cancel_token=cancel_token,
        )
        if isinstance(raw, dict):
            return AIResponse.model_validate(raw)
        return AIResponse(response=str(raw))

    def query_suggestions(self, request: AIQueryRequest) -> list[str]:
        """Refinements offered while the user types. No backend round-trip."""
        return [
            f"Analyze legal implications of {request.query}",
            f"What are the risks associated with {request.query}?",
            f"Legal precedents related to {request.query}",
        ]

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> StreamingClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
