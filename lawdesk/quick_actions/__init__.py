from lawdesk.quick_actions.builtin import (
    ExtractDatesAction,
    GenericQuickAction,
    PrepareForCourtAction,
    ReplyToLetterAction,
    SummarizeDocumentAction,
)
from lawdesk.quick_actions.interface import QuickAction
from lawdesk.quick_actions.messages import ChatMessageManager
from lawdesk.quick_actions.notifications import LoggingNotifier, Notifier
from lawdesk.quick_actions.orchestrator import (
    QuickActionOrchestrator,
    QuickActionOutcome,
    QuickActionRejected,
    QuickActionRun,
    RejectionReason,
)
from lawdesk.quick_actions.registry import QuickActionRegistry
from lawdesk.quick_actions.service import AIService, HttpAIService

__all__ = [
    "AIService",
    "ChatMessageManager",
    "ExtractDatesAction",
    "GenericQuickAction",
    "HttpAIService",
    "LoggingNotifier",
    "Notifier",
    "PrepareForCourtAction",
    "QuickAction",
    "QuickActionOrchestrator",
    "QuickActionOutcome",
    "QuickActionRegistry",
    "QuickActionRejected",
    "QuickActionRun",
    "RejectionReason",
    "ReplyToLetterAction",
    "SummarizeDocumentAction",
]
