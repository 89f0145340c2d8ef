"""Notification sink package."""

from fintrack.services.notifications.notifier import (
    Notification,
    NotificationLevel,
    Notifier,
    notifications_for_error,
)

__all__ = [
    "Notification",
    "NotificationLevel",
    "Notifier",
    "notifications_for_error",
]
