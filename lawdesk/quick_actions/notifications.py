"""Notifier ABC — where user-facing toasts go."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from lawdesk.core.models import Notification

logger = logging.getLogger(__name__)


class Notifier(ABC):
    @abstractmethod
    def notify(self, notification: Notification) -> None: ...


class LoggingNotifier(Notifier):
    """Writes notifications to the log. Default for headless use."""

    def notify(self, notification: Notification) -> None:
        level = logging.WARNING if notification.variant == "destructive" else logging.INFO
        logger.log(level, "%s: %s", notification.title, notification.description)
