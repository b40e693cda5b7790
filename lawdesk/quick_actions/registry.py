"""Quick-action registry — maps display names to action definitions."""

from __future__ import annotations

import logging

from lawdesk.quick_actions.builtin import BUILTIN_ACTIONS, GenericQuickAction
from lawdesk.quick_actions.interface import QuickAction

logger = logging.getLogger(__name__)


class QuickActionRegistry:
    """Name lookup with a generic fallback for unknown actions."""

    def __init__(self, actions: list[QuickAction] | None = None) -> None:
        self._actions: dict[str, QuickAction] = {}
        for action in actions if actions is not None else [cls() for cls in BUILTIN_ACTIONS]:
            self.register(action)

    def register(self, action: QuickAction) -> None:
        self._actions[action.name] = action
        logger.debug("Registered quick action %s -> %s", action.name, action.endpoint)

    def get(self, name: str) -> QuickAction:
        action = self._actions.get(name.strip())
        if action is None:
            return GenericQuickAction(name.strip())
        return action

    def names(self) -> list[str]:
        return list(self._actions)
