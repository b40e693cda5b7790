"""Quick-action orchestrator — one action at a time, markers survive reloads."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, NoReturn

from lawdesk.core.cancellation import CancellationToken
from lawdesk.core.errors import RequestCancelled, notification_for_error
from lawdesk.core.models import ChatMessage, Notification
from lawdesk.quick_actions.messages import ChatMessageManager
from lawdesk.quick_actions.notifications import Notifier
from lawdesk.quick_actions.registry import QuickActionRegistry
from lawdesk.quick_actions.service import AIService
from lawdesk.storage.interface import KeyValueStore

logger = logging.getLogger(__name__)

IN_PROGRESS_KEY = "QUICK_ACTION_IN_PROGRESS"
TYPE_KEY = "QUICK_ACTION_TYPE"
TIMESTAMP_KEY = "QUICK_ACTION_TIMESTAMP"
SELECTED_DOCS_KEY = "QUICK_ACTION_SELECTED_DOCS"
RUN_MARKER_KEYS = (IN_PROGRESS_KEY, TYPE_KEY, TIMESTAMP_KEY, SELECTED_DOCS_KEY)

LAST_RESULT_KEY = "LAST_QUICK_ACTION_RESULT"
LAST_TYPE_KEY = "LAST_QUICK_ACTION_TYPE"
LAST_TIMESTAMP_KEY = "LAST_QUICK_ACTION_TIMESTAMP"

DEFAULT_GRACE_DELAY = 0.5
DEFAULT_MARKER_TTL = 5 * 60.0


class RejectionReason(str, Enum):
    IN_PROGRESS = "action_in_progress"
    NO_DOCUMENTS = "no_documents_selected"
    DOCUMENT_COUNT = "invalid_document_count"


class QuickActionRejected(Exception):
    """A precondition failed; nothing was sent to the backend."""

    def __init__(self, reason: RejectionReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message


@dataclass
class QuickActionRun:
    action_name: str
    document_ids: tuple[str, ...]
    started_at: float
    cancel_token: CancellationToken = field(default_factory=CancellationToken)

    @property
    def stamp(self) -> str:
        return str(int(self.started_at * 1000))


@dataclass
class QuickActionOutcome:
    result: dict[str, Any]
    message: ChatMessage


class QuickActionOrchestrator:
    """Runs named quick actions over the currently selected documents.

    At most one run is active per orchestrator (one conversation). The
    in-progress state lives both in memory and in ``markers`` so that a
    restarted process, or a second orchestrator sharing the same store,
    rejects a duplicate submission while the first call is in flight.
    Markers are cleared ``grace_delay`` seconds after a run settles;
    ``cancel()`` clears them at once.
    """

    def __init__(
        self,
        service: AIService,
        markers: KeyValueStore,
        notifier: Notifier,
        chat: ChatMessageManager,
        selected_document_ids: Callable[[], Iterable[str]],
        model: str = "gpt-4o-mini",
        registry: QuickActionRegistry | None = None,
        grace_delay: float = DEFAULT_GRACE_DELAY,
        marker_ttl: float = DEFAULT_MARKER_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._service = service
        self._markers = markers
        self._notifier = notifier
        self._chat = chat
        self._selected = selected_document_ids
        self.model = model
        self._registry = registry or QuickActionRegistry()
        self._grace_delay = grace_delay
        self._marker_ttl = marker_ttl
        self._clock = clock
        self._run: QuickActionRun | None = None
        self._last_result: dict[str, Any] | None = None
        self._finished_stamp: str | None = None
        self._cleanup_tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def active_run(self) -> QuickActionRun | None:
        return self._run

    def action_in_progress(self) -> str | None:
        """Name of the running action, from memory or the persisted markers."""
        if self._run is not None:
            return self._run.action_name
        run = self._persisted_run()
        return run.action_name if run is not None else None

    def interrupted_run(self) -> QuickActionRun | None:
        """A run recorded in the markers that this instance did not start."""
        if self._run is not None:
            return None
        if self._finished_stamp is not None and self._markers.get(TIMESTAMP_KEY) == self._finished_stamp:
            return None
        return self._persisted_run()

    def last_result(self) -> dict[str, Any] | None:
        if self._last_result is not None:
            return self._last_result
        saved = self._markers.get(LAST_RESULT_KEY)
        if not saved:
            return None
        try:
            return json.loads(saved)
        except json.JSONDecodeError:
            logger.warning("Could not parse saved action result")
            return None

    # ------------------------------------------------------------------
    # Execute / cancel
    # ------------------------------------------------------------------

    async def execute(self, action_name: str) -> QuickActionOutcome:
        # Everything up to the marker write runs without yielding, so two
        # triggers can never both pass the in-progress check.
        running = self.action_in_progress()
        if running is not None:
            self._reject(
                RejectionReason.IN_PROGRESS,
                "Action in Progress",
                "Please wait for the current action to complete.",
            )

        document_ids = tuple(self._selected())
        if not document_ids:
            self._reject(
                RejectionReason.NO_DOCUMENTS,
                "No Documents Selected",
                "Please select at least one document for this action.",
            )

        action = self._registry.get(action_name)
        problem = action.check_documents(document_ids)
        if problem is not None:
            self._reject(RejectionReason.DOCUMENT_COUNT, "Invalid Document Selection", problem)

        run = QuickActionRun(action.name, document_ids, self._clock())
        self._run = run
        self._write_markers(run)
        logger.info("Executing %s with documents: %s", action.name, list(document_ids))

        try:
            if action.announces_start:
                self._chat.create_system_message(
                    f"Starting {action.name} analysis on {len(document_ids)} document(s)..."
                )
            result = await self._service.handle_quick_action(
                action, list(document_ids), self.model, cancel_token=run.cancel_token,
            )
            if run.cancel_token.is_cancelled():
                raise RequestCancelled(f"{action.name} was cancelled")
        except RequestCancelled:
            logger.info("%s cancelled", action.name)
            raise
        except Exception as exc:
            logger.error("Error in %s: %s", action.name, exc)
            notification = notification_for_error(exc, title=f"{action.name} Failed")
            self._notifier.notify(notification.model_copy(update={"duration": 10.0}))
            detail = str(exc) or "An unexpected error occurred"
            self._chat.create_system_message(f"Error in {action.name}: {detail}", is_error=True)
            raise
        else:
            self._remember(action.name, result)
            message = self._chat.handle_quick_action_result(action.name, result, list(document_ids))
            self._notifier.notify(Notification(
                title=f"{action.name} Complete",
                description=f"Successfully processed {len(document_ids)} document(s)",
            ))
            return QuickActionOutcome(result=result, message=message)
        finally:
            self._finish(run)

    def cancel(self) -> bool:
        """Abort the running action and clear its markers immediately."""
        run = self._run
        if run is None:
            return False
        self._run = None
        run.cancel_token.cancel()
        self._clear_markers()
        self._notifier.notify(Notification(
            title="Action Cancelled",
            description="The quick action was cancelled",
        ))
        return True

    async def settle(self) -> None:
        """Wait for pending delayed marker cleanups."""
        if self._cleanup_tasks:
            await asyncio.gather(*list(self._cleanup_tasks))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _reject(self, reason: RejectionReason, title: str, description: str) -> NoReturn:
        logger.info("Quick action rejected (%s): %s", reason.value, description)
        self._notifier.notify(Notification(title=title, description=description, variant="destructive"))
        raise QuickActionRejected(reason, description)

    def _finish(self, run: QuickActionRun) -> None:
        if self._run is run:
            self._run = None
        self._finished_stamp = run.stamp
        cancelled = run.cancel_token.is_cancelled()
        run.cancel_token.dispose()
        if cancelled:
            return
        task = asyncio.get_running_loop().create_task(self._clear_markers_later(run))
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)

    async def _clear_markers_later(self, run: QuickActionRun) -> None:
        await asyncio.sleep(self._grace_delay)
        if self._markers.get(TIMESTAMP_KEY) == run.stamp:
            self._clear_markers()

    def _write_markers(self, run: QuickActionRun) -> None:
        self._markers.set(IN_PROGRESS_KEY, "true")
        self._markers.set(TYPE_KEY, run.action_name)
        self._markers.set(TIMESTAMP_KEY, run.stamp)
        self._markers.set(SELECTED_DOCS_KEY, json.dumps(list(run.document_ids)))

    def _clear_markers(self) -> None:
        for key in RUN_MARKER_KEYS:
            self._markers.remove(key)

    def _persisted_run(self) -> QuickActionRun | None:
        if self._markers.get(IN_PROGRESS_KEY) != "true":
            return None
        try:
            started_at = int(self._markers.get(TIMESTAMP_KEY) or "") / 1000
        except ValueError:
            started_at = None
        if started_at is None or self._clock() - started_at > self._marker_ttl:
            logger.warning("Clearing abandoned quick action markers")
            self._clear_markers()
            return None
        try:
            document_ids = tuple(json.loads(self._markers.get(SELECTED_DOCS_KEY) or "[]"))
        except json.JSONDecodeError:
            document_ids = ()
        return QuickActionRun(
            action_name=self._markers.get(TYPE_KEY) or "unknown",
            document_ids=document_ids,
            started_at=started_at,
        )

    def _remember(self, action_name: str, result: dict[str, Any]) -> None:
        self._last_result = result
        try:
            self._markers.set(LAST_RESULT_KEY, json.dumps(result, default=str))
            self._markers.set(LAST_TYPE_KEY, action_name)
            self._markers.set(LAST_TIMESTAMP_KEY, str(int(self._clock() * 1000)))
        except (TypeError, ValueError, OSError) as exc:
            logger.warning("Could not save result to marker store: %s", exc)
