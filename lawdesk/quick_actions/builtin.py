"""Built-in quick actions offered next to the document list."""

from __future__ import annotations

from typing import Any, Sequence

from lawdesk.quick_actions.interface import QuickAction


class ExtractDatesAction(QuickAction):
    endpoint = "/api/extract_dates"

    @property
    def name(self) -> str:
        return "Extract Dates"

    @property
    def action_type(self) -> str:
        return "extract_dates"

    def query(self) -> str:
        return (
            "Please extract all important dates from the selected documents "
            "and explain their significance."
        )

    def build_payload(self, document_ids: Sequence[str], model: str, client_id: str) -> dict[str, Any]:
        # The backend loads document text itself; ``content`` only satisfies validation.
        return {
            "documents": list(document_ids),
            "client_id": client_id,
            "model": model,
            "skip_training_data": True,
            "content": "",
        }

    def format_result(self, raw: Any) -> dict[str, Any]:
        if not isinstance(raw, dict):
            return {"content": str(raw), "dates": []}
        dates = raw.get("dates") or []
        content = raw.get("formatted_response") or raw.get("response")
        if not content:
            content = format_dates_markdown(dates)
        return {
            "content": content,
            "dates": dates,
            "token_usage": raw.get("token_usage"),
            "cost": raw.get("cost"),
        }


def format_dates_markdown(dates: list[dict[str, Any]]) -> str:
    lines = ["## Extracted Dates", ""]
    if not dates:
        lines.append("No dates were found in the selected documents.")
        return "\n".join(lines)
    for item in dates:
        lines.append(f"### {item.get('date', 'Unknown date')}")
        if item.get("event"):
            lines += [f"**Event:** {item['event']}", ""]
        if item.get("context"):
            lines += [f"**Context:** {item['context']}", ""]
        if item.get("source_document"):
            lines += [f"**Source:** Document ID {item['source_document']}", ""]
        lines += ["---", ""]
    return "\n".join(lines)


class SummarizeDocumentAction(QuickAction):
    @property
    def name(self) -> str:
        return "Summarize Document"

    @property
    def action_type(self) -> str:
        return "summarize"

    def query(self) -> str:
        return (
            "Please provide a comprehensive summary of the selected documents, "
            "highlighting key points."
        )


class ReplyToLetterAction(QuickAction):
    min_documents = 1
    max_documents = 1

    @property
    def name(self) -> str:
        return "Reply to Letter"

    def query(self) -> str:
        return "Please help me write a professional response to this letter."


class PrepareForCourtAction(QuickAction):
    announces_start = True

    @property
    def name(self) -> str:
        return "Prepare for Court"

    def query(self) -> str:
        return "Please help me prepare for court proceedings based on these documents."


class GenericQuickAction(QuickAction):
    """Fallback for names without a dedicated definition."""

    def __init__(self, name: str) -> None:
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def query(self) -> str:
        return f"Please perform {self._name} on the selected documents."


BUILTIN_ACTIONS: tuple[type[QuickAction], ...] = (
    ExtractDatesAction,
    SummarizeDocumentAction,
    ReplyToLetterAction,
    PrepareForCourtAction,
)
