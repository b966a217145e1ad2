"""Celery application used to hand work to background workers.

The auto-match engine only publishes to the broker; the notification
tasks themselves are consumed by the notification worker deployment.
"""

from celery import Celery

from config import settings

celery_app = Celery("winetrade", broker=settings.CELERY_BROKER_URL)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # Publishing must not block a request on an unreachable broker
    task_publish_retry=False,
    broker_connection_timeout=2,
)
