"""lawdesk — resilient API client and streaming AI query layer for the law-practice app.

Usage::

    from lawdesk import AIQueryRequest, StreamQuery, create_api_client, create_streaming_client

    api = create_api_client()
    clients = await api.get("/api/clients")

    streaming = create_streaming_client()
    async with StreamQuery(streaming) as q:
        await q.start(AIQueryRequest(query="...", client_id="c-1"))
"""

from __future__ import annotations

import os
from typing import Callable, Iterable

from dotenv import load_dotenv

load_dotenv()  # reads .env into os.environ (no-op if file missing)

from lawdesk.cache.in_memory import InMemoryResponseCache
from lawdesk.context import RequestContext
from lawdesk.core.errors import ApiError, ApiErrorKind, RequestCancelled
from lawdesk.core.models import AIQueryRequest, ClientOptions, StreamChunk
from lawdesk.core.resilient import ResilientApiClient
from lawdesk.core.stream_query import StreamQuery
from lawdesk.core.streaming import StreamingClient
from lawdesk.quick_actions.messages import ChatMessageManager
from lawdesk.quick_actions.notifications import LoggingNotifier, Notifier
from lawdesk.quick_actions.orchestrator import QuickActionOrchestrator
from lawdesk.quick_actions.service import HttpAIService
from lawdesk.storage.in_memory import InMemoryKeyValueStore
from lawdesk.storage.json_file import JSONFileKeyValueStore
from lawdesk.tracing.interface import NullTraceCollector
from lawdesk.tracing.jsonl_tracer import JSONLTraceCollector

__all__ = [
    "AIQueryRequest",
    "ApiError",
    "ApiErrorKind",
    "ClientOptions",
    "RequestCancelled",
    "RequestContext",
    "ResilientApiClient",
    "StreamChunk",
    "StreamQuery",
    "StreamingClient",
    "create_api_client",
    "create_context",
    "create_quick_actions",
    "create_streaming_client",
    "load_options",
]

DEFAULT_MODEL = "gpt-4o-mini"


def load_options(**overrides) -> ClientOptions:
    """Build :class:`ClientOptions` from the environment.

    Environment variables (all optional):
      LAWDESK_API_BASE_URL  — default ``http://localhost:8000``
      LAWDESK_AUTH_TOKEN    — sent as ``Authorization: Bearer ...``
      LAWDESK_TIMEOUT       — seconds, ``off`` disables
      LAWDESK_RETRIES       — default ``3``
      LAWDESK_RETRY_DELAY   — backoff base in seconds, default ``1.0``
      LAWDESK_CACHE         — ``0`` disables the GET cache
      LAWDESK_CACHE_TTL     — seconds, default ``300``
    """
    defaults = ClientOptions()
    headers: dict[str, str] = {}
    token = os.environ.get("LAWDESK_AUTH_TOKEN")
    if token:
        headers["Authorization"] = f"Bearer {token}"

    timeout_raw = os.environ.get("LAWDESK_TIMEOUT", "")
    if timeout_raw.lower() in ("off", "none"):
        timeout: float | None = None
    elif timeout_raw:
        timeout = float(timeout_raw)
    else:
        timeout = defaults.timeout

    values = {
        "base_url": os.environ.get("LAWDESK_API_BASE_URL", defaults.base_url),
        "timeout": timeout,
        "retries": int(os.environ.get("LAWDESK_RETRIES", defaults.retries)),
        "retry_delay": float(os.environ.get("LAWDESK_RETRY_DELAY", defaults.retry_delay)),
        "cache": os.environ.get("LAWDESK_CACHE", "1") not in ("0", "false", "off"),
        "cache_ttl": float(os.environ.get("LAWDESK_CACHE_TTL", defaults.cache_ttl)),
        "headers": headers,
    }
    values.update(overrides)
    return ClientOptions(**values)


def create_context(
    *,
    marker_file: str | None = None,
    trace_dir: str | None = None,
) -> RequestContext:
    """Session-wide shared state.

    Environment variables (all optional):
      LAWDESK_MARKER_FILE  — JSON file for quick-action markers (else in-memory)
      LAWDESK_TRACE_DIR    — directory for per-request JSONL traces (else off)
    """
    marker_file = marker_file or os.environ.get("LAWDESK_MARKER_FILE")
    trace_dir = trace_dir or os.environ.get("LAWDESK_TRACE_DIR")
    return RequestContext(
        cache=InMemoryResponseCache(),
        markers=JSONFileKeyValueStore(marker_file) if marker_file else InMemoryKeyValueStore(),
        trace=JSONLTraceCollector(trace_dir) if trace_dir else NullTraceCollector(),
    )


def create_api_client(
    *,
    options: ClientOptions | None = None,
    context: RequestContext | None = None,
) -> ResilientApiClient:
    return ResilientApiClient(options or load_options(), context=context or create_context())


def create_streaming_client(
    *,
    options: ClientOptions | None = None,
    context: RequestContext | None = None,
) -> StreamingClient:
    return StreamingClient(options or load_options(), context=context or create_context())


def create_quick_actions(
    client_id: str,
    selected_document_ids: Callable[[], Iterable[str]],
    *,
    conversation_id: str | None = None,
    model: str | None = None,
    api: ResilientApiClient | None = None,
    notifier: Notifier | None = None,
    chat: ChatMessageManager | None = None,
) -> QuickActionOrchestrator:
    """Wire an orchestrator over the HTTP AI service.

    Environment variables (all optional):
      LAWDESK_MODEL  — default ``gpt-4o-mini``
    """
    api = api or create_api_client()
    return QuickActionOrchestrator(
        service=HttpAIService(api, client_id),
        markers=api.context.markers,
        notifier=notifier or LoggingNotifier(),
        chat=chat or ChatMessageManager(conversation_id),
        selected_document_ids=selected_document_ids,
        model=model or os.environ.get("LAWDESK_MODEL", DEFAULT_MODEL),
    )
