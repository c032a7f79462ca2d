"""
Background Tasks for Notification Delivery

Celery tasks for:
- Sending transactional email through the Resend HTTP API

All tasks support:
- Automatic retries on transport failure
- Prometheus metrics
"""

import logging
import time

import httpx
from prometheus_client import Counter, Histogram

from jobboard.celery import celery_app
from jobboard.config import get_settings

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"

# ==================== Prometheus Metrics ====================

TASK_DURATION = Histogram(
    "celery_task_duration_seconds",
    "Time spent executing Celery tasks",
    ["task_name"]
)

TASK_FAILURES = Counter(
    "celery_task_failures_total",
    "Number of Celery task failures",
    ["task_name"]
)

EMAILS_SENT = Counter(
    "emails_sent_total",
    "Number of emails accepted by the mail provider"
)


# ==================== Celery Tasks ====================

@celery_app.task(bind=True, max_retries=3, default_retry_delay=60)
def send_email(self, to: str, subject: str, html: str) -> dict:
    """
    Deliver one email.

    Without a RESEND_API_KEY the message is logged and skipped, so local
    development works without a mail provider.

    Args:
        to: Recipient address
        subject: Subject line
        html: HTML body

    Returns:
        Dict with delivery status and provider message id
    """
    start_time = time.time()
    settings = get_settings()

    if not settings.resend_api_key:
        logger.info(f"RESEND_API_KEY not set, skipping email to {to}: {subject}")
        return {"sent": False, "reason": "not_configured"}

    try:
        response = httpx.post(
            RESEND_API_URL,
            headers={"Authorization": f"Bearer {settings.resend_api_key}"},
            json={
                "from": settings.resend_from_email,
                "to": [to],
                "subject": subject,
                "html": html,
            },
            timeout=10.0,
        )
        response.raise_for_status()
        EMAILS_SENT.inc()
        logger.info(f"Sent email to {to}: {subject}")
        return {"sent": True, "id": response.json().get("id")}

    except httpx.HTTPError as exc:
        TASK_FAILURES.labels(task_name="send_email").inc()
        logger.error(f"Email delivery to {to} failed: {exc}")
        raise self.retry(exc=exc, countdown=60)

    finally:
        duration = time.time() - start_time
        TASK_DURATION.labels(task_name="send_email").observe(duration)
