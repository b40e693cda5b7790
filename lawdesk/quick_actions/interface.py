"""QuickAction ABC — prompt, endpoint, document rule, payload and result shape."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Sequence

QUERY_ENDPOINT = "/api/query/"


class QuickAction(ABC):
    """A named document-analysis workflow.

    Subclasses pick the backend endpoint and shape the request; the
    orchestrator only relies on ``check_documents`` and the service on
    ``build_payload`` / ``format_result``.
    """

    endpoint: str = QUERY_ENDPOINT
    min_documents: int = 1
    max_documents: int | None = None
    # Post a "Starting ..." system message before the call.
    announces_start: bool = False

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def query(self) -> str: ...

    @property
    def action_type(self) -> str:
        return self.name.lower().replace(" ", "_")

    def check_documents(self, document_ids: Sequence[str]) -> str | None:
        """Return a human-readable reason if the selection is unusable."""
        count = len(document_ids)
        if self.min_documents == self.max_documents and count != self.min_documents:
            noun = "document" if self.min_documents == 1 else "documents"
            word = "one" if self.min_documents == 1 else str(self.min_documents)
            return f"{self.name} requires exactly {word} {noun}"
        if count < self.min_documents:
            return f"{self.name} requires at least {self.min_documents} document(s)"
        if self.max_documents is not None and count > self.max_documents:
            return f"{self.name} accepts at most {self.max_documents} document(s)"
        return None

    def build_payload(self, document_ids: Sequence[str], model: str, client_id: str) -> dict[str, Any]:
        return {
            "query": self.query(),
            "client_id": client_id,
            "documents": list(document_ids),
            "conversation_id": None,
            "model": model,
            "search_mode": "direct",
            "action_type": self.action_type,
            "skip_training_data": True,
            "summarize_response": True,
        }

    def format_result(self, raw: Any) -> dict[str, Any]:
        if isinstance(raw, dict):
            return raw
        return {"content": str(raw)}
