from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    "success": logging.INFO,
    "info": logging.INFO,
    "error": logging.WARNING,
}


@dataclass
class Notification:
    level: str
    message: str
    action: str | None = None


class Notifier:
    """Collects user-facing notifications and forwards them to listeners."""

    def __init__(self) -> None:
        self.history: list[Notification] = []
        self._listeners: list[Callable[[Notification], None]] = []

    def subscribe(self, listener: Callable[[Notification], None]) -> None:
        self._listeners.append(listener)

    def notify(self, level: str, message: str, action: str | None = None) -> Notification:
        notification = Notification(level=level, message=message, action=action)
        self.history.append(notification)
        logger.log(_LOG_LEVELS.get(level, logging.INFO), message)
        for listener in self._listeners:
            listener(notification)
        return notification

    def success(self, message: str) -> Notification:
        return self.notify("success", message)

    def error(self, message: str) -> Notification:
        return self.notify("error", message)

    def info(self, message: str, action: str | None = None) -> Notification:
        return self.notify("info", message, action=action)
