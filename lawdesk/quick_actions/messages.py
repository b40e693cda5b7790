"""Chat message bookkeeping for quick-action results."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Sequence

from lawdesk.core.models import ChatMessage, MessageRole

logger = logging.getLogger(__name__)

_CONTENT_FIELDS = ("content", "response", "formatted_response", "court_preparation", "summary")
_COURT_FIELDS = ("court_preparation", "content", "response", "summary")


def extract_content(result: Any, fields: Sequence[str] = _CONTENT_FIELDS) -> str | None:
    """First non-empty string among *fields*, then the same lookup in ``data``."""
    if isinstance(result, str):
        return result.strip() or None
    if not isinstance(result, dict):
        return None
    for name in fields:
        value = result.get(name)
        if isinstance(value, str) and value.strip():
            return value
    data = result.get("data")
    if isinstance(data, dict):
        return extract_content(data, fields)
    return None


def _metadata_sections(metadata: Any) -> str | None:
    if not isinstance(metadata, dict):
        return None
    sections = [
        f"### {key.replace('_', ' ').capitalize()}\n\n{value}"
        for key, value in metadata.items()
        if isinstance(value, str) and len(value) > 20 and "id" not in key and "timestamp" not in key
    ]
    return "\n\n".join(sections) or None


class ChatMessageManager:
    """Holds the conversation's messages and reports every change."""

    def __init__(
        self,
        conversation_id: str | None = None,
        messages: list[ChatMessage] | None = None,
        on_change: Callable[[list[ChatMessage]], None] | None = None,
    ) -> None:
        self.conversation_id = conversation_id
        self._messages: list[ChatMessage] = list(messages or [])
        self._on_change = on_change

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    def create_system_message(self, content: str, is_error: bool = False) -> ChatMessage:
        return self._append(ChatMessage(
            role=MessageRole.SYSTEM,
            content=content,
            conversation_id=self.conversation_id or "pending",
            error=is_error,
        ))

    def handle_quick_action_result(
        self,
        action_name: str,
        result: Any,
        document_ids: Sequence[str] = (),
    ) -> ChatMessage:
        return self._append(ChatMessage(
            role=MessageRole.ASSISTANT,
            content=self.display_content(action_name, result),
            conversation_id=self.conversation_id or "pending",
            metadata={
                "quick_action": action_name,
                "document_ids": list(document_ids),
            },
        ))

    @staticmethod
    def display_content(action_name: str, result: Any) -> str:
        if action_name == "Prepare for Court":
            body = extract_content(result, _COURT_FIELDS)
            if body is None and isinstance(result, dict):
                body = _metadata_sections(result.get("metadata"))
            if body is not None:
                return body if body.lstrip().startswith("#") else f"## {action_name}\n\n{body}"
        else:
            body = extract_content(result)
            if body is not None:
                return body
        dumped = json.dumps(result, indent=2, default=str)
        return f"## {action_name}\n\n```json\n{dumped}\n```"

    def _append(self, message: ChatMessage) -> ChatMessage:
        self._messages.append(message)
        if self._on_change is not None:
            try:
                self._on_change(self.messages)
            except Exception:
                logger.exception("chat change callback failed")
        return message
