"""Leaf types shared across the package. Clients live in their own modules
(``lawdesk.core.resilient``, ``lawdesk.core.streaming``) and are re-exported
from ``lawdesk``."""

from lawdesk.core.cancellation import CancellationToken
from lawdesk.core.connectivity import ConnectivityMonitor
from lawdesk.core.errors import (
    ApiError,
    ApiErrorKind,
    RequestCancelled,
    classify,
    notification_for_error,
)
from lawdesk.core.models import (
    AIQueryRequest,
    AIResponse,
    CacheEntry,
    ChatMessage,
    ChunkType,
    ClientOptions,
    ConversationTurn,
    HttpMethod,
    MessageRole,
    Notification,
    RequestDescriptor,
    SourceCitation,
    StreamChunk,
    TokenUsage,
)

__all__ = [
    "AIQueryRequest",
    "AIResponse",
    "ApiError",
    "ApiErrorKind",
    "CacheEntry",
    "CancellationToken",
    "ChatMessage",
    "ChunkType",
    "ClientOptions",
    "ConnectivityMonitor",
    "ConversationTurn",
    "HttpMethod",
    "MessageRole",
    "Notification",
    "RequestCancelled",
    "RequestDescriptor",
    "SourceCitation",
    "StreamChunk",
    "TokenUsage",
    "classify",
    "notification_for_error",
]
