"""Notification dispatchers for matched customer POs.

Dispatch is fire-and-forget: ReconciliationService swallows and logs any
exception raised here, and never retries.
"""

from uuid import UUID

from celery import Celery

from customer_pos.ports import NotificationDispatcherPort
from observability.logging_config import get_logger

logger = get_logger(__name__)


class CeleryNotificationDispatcher(NotificationDispatcherPort):
    """Enqueue the distributor notification task by name.

    The task (e.g. "notifications.customer_po_received") is implemented by
    the notification worker, so it is sent with send_task() instead of
    being imported here.
    """

    def __init__(self, celery_app: Celery, task_name: str):
        """Initialize dispatcher.

        Args:
            celery_app: Celery app bound to the broker
            task_name: Registered name of the notification task
        """
        self.celery_app = celery_app
        self.task_name = task_name

    def notify_customer_po_reconciled(self, customer_po_id: UUID) -> None:
        result = self.celery_app.send_task(
            self.task_name,
            kwargs={"customer_po_id": str(customer_po_id)},
        )
        logger.info(
            f"Enqueued {self.task_name} for customer PO {customer_po_id}",
            extra={"customer_po_id": customer_po_id, "task_id": result.id}
        )


class NullNotificationDispatcher(NotificationDispatcherPort):
    """Dispatcher used when NOTIFICATIONS_ENABLED is false."""

    def notify_customer_po_reconciled(self, customer_po_id: UUID) -> None:
        logger.debug(
            f"Notifications disabled, skipping customer PO {customer_po_id}",
            extra={"customer_po_id": customer_po_id}
        )
