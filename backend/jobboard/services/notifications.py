"""
Notification intents

notify() adds the in-app Notification row to the caller's session so it
commits (or rolls back) together with the state change that produced it.

dispatch_email() hands delivery to the Celery worker after commit. Delivery
is best-effort: a broker outage is logged and never fails the request.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from jobboard.clock import utcnow
from jobboard.models import Notification

logger = logging.getLogger(__name__)


def notify(
    db: AsyncSession,
    user_id: str,
    title: str,
    message: str,
    link: Optional[str] = None,
    kind: str = "GENERAL",
    ad_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        ad_id=ad_id,
        kind=kind,
        title=title,
        message=message,
        link=link,
        created_at=now or utcnow(),
    )
    db.add(notification)
    return notification


def dispatch_email(to: str, subject: str, html: str) -> bool:
    """Enqueue an email; returns False when the broker is unreachable."""
    from jobboard.tasks.notifications import send_email

    try:
        send_email.delay(to, subject, html)
        return True
    except Exception as e:
        logger.warning(f"Could not enqueue email to {to}: {e}")
        return False
