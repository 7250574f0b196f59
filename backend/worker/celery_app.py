"""Celery application configuration.

This module sets up the Celery app with:
- Redis as broker and result backend
- A dedicated queue for workflow executions
- JSON serialization and UTC timestamps
"""

from celery import Celery
from celery.signals import setup_logging as celery_setup_logging

from app.config import get_settings
from core.logging_config import setup_logging

settings = get_settings()

# Create Celery app
celery_app = Celery(
    "flowpilot",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

# Configuration
celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # Timezone
    timezone="UTC",
    enable_utc=True,

    task_routes={
        "worker.tasks.workflow.*": {"queue": "workflows"},
    },
    task_default_queue="default",

    # Result expiration (24 hours)
    result_expires=86400,

    # Executions run to completion; a late ack redelivers work lost with a worker
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_reject_on_worker_lost=True,

    include=[
        "worker.tasks.workflow",
    ],
)


@celery_setup_logging.connect
def configure_worker_logging(**kwargs):
    """Route worker logs through the application's structlog setup."""
    setup_logging()
