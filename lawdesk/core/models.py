"""Core data models — no internal dependencies, only Pydantic + stdlib."""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Request configuration
# ---------------------------------------------------------------------------

class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class ClientOptions(BaseModel):
    """Client-level defaults. Times are in seconds."""
    base_url: str = "http://localhost:8000"
    timeout: float | None = 30.0
    retries: int = Field(default=3, ge=0)
    retry_delay: float = Field(default=1.0, ge=0)
    retry_jitter: float = Field(default=1.0, ge=0)
    headers: dict[str, str] = Field(default_factory=dict)
    cache: bool = True
    cache_ttl: float = 5 * 60.0


class RequestDescriptor(BaseModel):
    """One logical call, after merging client defaults with call overrides."""
    model_config = ConfigDict(frozen=True)

    method: HttpMethod = HttpMethod.GET
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None
    timeout: float | None = Field(default=None, ge=0)
    retries: int = Field(default=0, ge=0)
    retry_delay: float = Field(default=1.0, ge=0)
    cache: bool = False
    cache_ttl: float = Field(default=0.0, ge=0)

    @property
    def is_cacheable(self) -> bool:
        return self.method == HttpMethod.GET and self.cache


class CacheEntry(BaseModel):
    key: str
    value: Any = None
    stored_at: float = Field(default_factory=time.time)


# ---------------------------------------------------------------------------
# AI query payloads
# ---------------------------------------------------------------------------

class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class SourceCitation(BaseModel):
    id: str = ""
    content: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    similarity_score: float | None = None


class ConversationTurn(BaseModel):
    role: str  # user | assistant
    content: str


class AIQueryRequest(BaseModel):
    query: str
    client_id: str
    documents: list[str] = Field(default_factory=list)
    use_rag: bool = True
    model: str | None = None
    system_prompt: str | None = None
    conversation_id: str | None = None
    previous_messages: list[ConversationTurn] | None = None
    max_tokens: int | None = None


class AIResponse(BaseModel):
    """Single-shot (non-streaming) answer from the query endpoint."""
    response: str = ""
    token_usage: TokenUsage | None = None
    cost: float | None = None
    sources: list[SourceCitation] | None = None


# ---------------------------------------------------------------------------
# Stream chunks (transport -> consumer)
# ---------------------------------------------------------------------------

class ChunkType(str, Enum):
    CONTENT = "content"
    WELCOME = "welcome"
    COMPLETE = "complete"
    ERROR = "error"


class StreamChunk(BaseModel):
    type: ChunkType = ChunkType.CONTENT
    content: str | None = None
    done: bool = False
    token_usage: TokenUsage | None = None
    sources: list[SourceCitation] | None = None
    error: str | None = None
    is_general_chat: bool | None = None

    @property
    def replaces_content(self) -> bool:
        """Welcome/complete frames carry the whole answer in one shot."""
        return self.type in (ChunkType.WELCOME, ChunkType.COMPLETE)

    @property
    def is_terminal(self) -> bool:
        return (
            self.replaces_content
            or self.type == ChunkType.ERROR
            or self.done
            or self.error is not None
        )


# ---------------------------------------------------------------------------
# Chat + notifications (orchestrator side effects)
# ---------------------------------------------------------------------------

class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ChatMessage(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    conversation_id: str = "pending"
    error: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)


class Notification(BaseModel):
    title: str
    description: str = ""
    variant: str = "default"  # default | destructive
    duration: float = 5.0
