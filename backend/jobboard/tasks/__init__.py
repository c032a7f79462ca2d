"""
Celery Task Modules

Background tasks:
- notifications.py: Email delivery for lifecycle and expiry notices
"""

from jobboard.tasks.notifications import send_email

__all__ = [
    "send_email",
]
