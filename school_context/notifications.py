"""
User-visible, non-blocking notifications ("toasts").

Intent:
    The resolver layers must never crash the UI on degraded data. Instead they
    publish a notification and fall back to an empty result. Adapters decide
    how to render them; tests use `CollectingNotifier` to assert on them.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import List, Optional, Protocol


@dataclass(frozen=True)
class Notification:
    level: str  # "info" | "error"
    title: str
    description: Optional[str] = None


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None: ...


class LoggingNotifier:
    """Default notifier: forward notifications to the logging system."""

    def __init__(self, logger_name: str = "school_context.notifications") -> None:
        self._log = logging.getLogger(logger_name)

    def notify(self, notification: Notification) -> None:
        level = logging.WARNING if notification.level == "error" else logging.INFO
        self._log.log(level, "%s: %s", notification.title, notification.description or "")


class CollectingNotifier:
    def __init__(self) -> None:
        self.items: List[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.items.append(notification)

    def drain(self) -> List[Notification]:
        items, self.items = self.items, []
        return items


def error(title: str, description: str | None = None) -> Notification:
    return Notification(level="error", title=title, description=description)


def info(title: str, description: str | None = None) -> Notification:
    return Notification(level="info", title=title, description=description)


__all__ = [
    "Notification",
    "Notifier",
    "LoggingNotifier",
    "CollectingNotifier",
    "error",
    "info",
]
