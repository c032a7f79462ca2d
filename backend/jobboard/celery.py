"""
Celery Application Configuration

Configures Celery for background delivery work with:
- Redis as message broker and result backend
- Task autodiscovery from jobboard.tasks module
- Retry policies for reliability

Usage:
    # Start worker:
    celery -A jobboard.celery worker --loglevel=info

    # Enqueue a task:
    from jobboard.tasks.notifications import send_email
    send_email.delay("owner@example.com", "Your ad expires today", "<p>...</p>")
"""

from celery import Celery
from jobboard.config import get_settings

settings = get_settings()

# Create Celery app
celery_app = Celery(
    "jobboard",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

# Configure Celery
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=4,

    # Result settings
    result_expires=3600,
    task_track_started=True,

    # Retry settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Rate limiting
    worker_disable_rate_limits=False,

    task_routes={
        "jobboard.tasks.notifications.send_email": {"queue": "notifications"},
    },

    task_default_queue="default",
)

# Autodiscover tasks
celery_app.autodiscover_tasks(["jobboard.tasks"])
