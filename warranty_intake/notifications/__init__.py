"""Best-effort notifications about finished intake runs."""

from .dispatcher import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    NotificationEvent,
    WebhookNotificationDispatcher,
    create_dispatcher,
    dispatch_safely,
)

__all__ = [
    "LoggingNotificationDispatcher",
    "NotificationDispatcher",
    "NotificationEvent",
    "WebhookNotificationDispatcher",
    "create_dispatcher",
    "dispatch_safely",
]
