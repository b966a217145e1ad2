"""Downstream notification dispatch."""

from config import settings
from workers.celery_app import celery_app

from .dispatcher import CeleryNotificationDispatcher, NullNotificationDispatcher


def get_notification_dispatcher():
    """FastAPI dependency returning the configured dispatcher."""
    if not settings.NOTIFICATIONS_ENABLED:
        return NullNotificationDispatcher()
    return CeleryNotificationDispatcher(celery_app, settings.NOTIFY_CUSTOMER_PO_TASK)


__all__ = [
    "CeleryNotificationDispatcher",
    "NullNotificationDispatcher",
    "get_notification_dispatcher",
]
