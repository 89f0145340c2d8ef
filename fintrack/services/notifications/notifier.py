"""
Notifications

Toast-style, transient messages for the user.

DESIGN DECISION: Failures at network call sites are converted into a
notification right where they are caught; nothing propagates to a
global error boundary. The Notifier is a plain sink that keeps a short
history and forwards every message to its listeners (a UI, a CLI, a test).
"""

from collections import deque
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

import structlog
from pydantic import BaseModel, Field

from fintrack.services.api.errors import ApiError, ValidationError


logger = structlog.get_logger(__name__)

NotificationListener = Callable[["Notification"], None]


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Notification(BaseModel):
    """One transient message."""

    level: NotificationLevel
    message: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=datetime.utcnow)


def notifications_for_error(error: Exception) -> list[Notification]:
    """
    Convert a failure into the messages the user sees.

    A validation error yields one notification per field message.
    Anything that is not an ApiError gets the generic message.
    """
    if isinstance(error, ValidationError):
        return [Notification(level=NotificationLevel.ERROR, message=m) for m in error.messages]
    if isinstance(error, ApiError):
        return [Notification(level=NotificationLevel.ERROR, message=error.message)]
    return [Notification(level=NotificationLevel.ERROR, message=str(error) or ApiError.default_message)]


class Notifier:
    """
    Collects notifications and fans them out to listeners.

    Usage:
        notifier = Notifier()
        notifier.subscribe(print)
        notifier.error("Failed to load dashboard data")
    """

    def __init__(self, history_size: int = 50):
        self._history: deque[Notification] = deque(maxlen=history_size)
        self._listeners: list[NotificationListener] = []

    @property
    def history(self) -> list[Notification]:
        return list(self._history)

    def subscribe(self, listener: NotificationListener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def notify(self, level: NotificationLevel, message: str) -> Notification:
        notification = Notification(level=level, message=message)
        self._emit(notification)
        return notification

    def success(self, message: str) -> Notification:
        return self.notify(NotificationLevel.SUCCESS, message)

    def info(self, message: str) -> Notification:
        return self.notify(NotificationLevel.INFO, message)

    def warning(self, message: str) -> Notification:
        return self.notify(NotificationLevel.WARNING, message)

    def error(self, message: str) -> Notification:
        return self.notify(NotificationLevel.ERROR, message)

    def report(self, error: Exception, context: Optional[str] = None) -> list[Notification]:
        """
        Surface a caught failure.

        Args:
            error: The exception that was caught.
            context: What was being attempted, for the log only.
        """
        notifications = notifications_for_error(error)
        logger.warning(
            "failure_reported",
            context=context,
            error_type=type(error).__name__,
            status=getattr(error, "status_code", None),
        )
        for notification in notifications:
            self._emit(notification)
        return notifications

    def clear(self) -> None:
        self._history.clear()

    def _emit(self, notification: Notification) -> None:
        self._history.append(notification)
        logger.info("notification", level=notification.level.value, message=notification.message)
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception as e:
                logger.error("notification_listener_failed", error=str(e))
