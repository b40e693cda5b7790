"""AI service — runs a quick action against the backend."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Sequence

from lawdesk.core.cancellation import CancellationToken
from lawdesk.core.resilient import ResilientApiClient
from lawdesk.quick_actions.interface import QuickAction

logger = logging.getLogger(__name__)


class AIService(ABC):
    """Async quick-action interface.

    Swap in a different backend by implementing this ABC.
    """

    @abstractmethod
    async def handle_quick_action(
        self,
        action: QuickAction,
        document_ids: Sequence[str],
        model: str,
        cancel_token: CancellationToken | None = None,
    ) -> dict[str, Any]: ...


class HttpAIService(AIService):
    """Posts the action payload through the resilient client (never cached)."""

    def __init__(
        self,
        api: ResilientApiClient,
        client_id: str,
        timeout: float | None = 120.0,
    ) -> None:
        self._api = api
        self._client_id = client_id
        self._timeout = timeout

    async def handle_quick_action(
        self,
        action: QuickAction,
        document_ids: Sequence[str],
        model: str,
        cancel_token: CancellationToken | None = None,
    ) -> dict[str, Any]:
        logger.info(
            "Starting %s (%s) with %d document(s), model=%s",
            action.name, action.action_type, len(document_ids), model,
        )
        payload = action.build_payload(document_ids, model, self._client_id)
        raw = await self._api.post(
            action.endpoint,
            payload,
            cache=False,
            timeout=self._timeout,
            cancel_token=cancel_token,
        )
        return action.format_result(raw)
