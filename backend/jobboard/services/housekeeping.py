"""
Housekeeping - Periodic maintenance of ad state

Jobs (each runs from the scheduler or a cron endpoint, and is idempotent):
    expire_ads             ACTIVE ads past end_date -> EXPIRED
    cancel_stale_deposits  PENDING_DEPOSIT ads older than the deposit
                           deadline -> CANCELLED, their pending payments too
    reset_manual_jumps     manual_jump_used_today -> 0 (local midnight)
    notify_expiring_ads    D-3 / D-1 / D-0 expiry notices, at most one per
                           ad and kind in any 24h window

Deposit cancellation only touches ads still PENDING_DEPOSIT at update time,
so an approval that lands between the read and the update always wins.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from jobboard.clock import local_day_bounds, to_local, utcnow
from jobboard.config import get_settings
from jobboard.middleware.metrics import record_housekeeping, record_job_duration
from jobboard.models import Ad, AdStatus, Notification, Payment, PaymentStatus, User
from jobboard.services.notifications import dispatch_email, notify

logger = logging.getLogger(__name__)

EXPIRY_NOTICE_DAYS = (3, 1, 0)
NOTICE_DEDUPE_WINDOW = timedelta(hours=24)


@dataclass
class NoticeReport:
    notified: int = 0
    skipped: int = 0
    emailed: int = 0
    kinds: dict = field(default_factory=dict)


async def expire_ads(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Move ACTIVE ads whose window has ended to EXPIRED. Returns rows changed."""
    start_time = time.time()
    now = now or utcnow()
    try:
        result = await db.execute(
            update(Ad)
            .where(Ad.status == AdStatus.ACTIVE, Ad.end_date < now)
            .values(status=AdStatus.EXPIRED)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    expired = result.rowcount
    record_housekeeping("expire_ads", expired)
    record_job_duration("expire_ads", time.time() - start_time)
    logger.info(f"Expired {expired} ads")
    return expired


async def cancel_stale_deposits(
    db: AsyncSession,
    now: Optional[datetime] = None,
    deadline_hours: Optional[int] = None,
) -> int:
    """
    Cancel bank-transfer orders whose deposit never arrived.

    Returns:
        Number of ads moved to CANCELLED
    """
    start_time = time.time()
    now = now or utcnow()
    if deadline_hours is None:
        deadline_hours = get_settings().deposit_deadline_hours
    cutoff = now - timedelta(hours=deadline_hours)

    result = await db.execute(
        select(Ad.id).where(Ad.status == AdStatus.PENDING_DEPOSIT, Ad.created_at < cutoff)
    )
    stale_ids = [row[0] for row in result.fetchall()]
    if not stale_ids:
        return 0

    try:
        ad_result = await db.execute(
            update(Ad)
            .where(Ad.id.in_(stale_ids), Ad.status == AdStatus.PENDING_DEPOSIT)
            .values(status=AdStatus.CANCELLED)
            .execution_options(synchronize_session=False)
        )
        cancelled_ids = select(Ad.id).where(Ad.id.in_(stale_ids), Ad.status == AdStatus.CANCELLED)
        await db.execute(
            update(Payment)
            .where(
                Payment.ad_id.in_(cancelled_ids),
                Payment.status == PaymentStatus.PENDING,
            )
            .values(
                status=PaymentStatus.CANCELLED,
                fail_reason=f"Deposit not received within {deadline_hours} hours",
            )
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    cancelled = ad_result.rowcount
    record_housekeeping("cancel_stale_deposits", cancelled)
    record_job_duration("cancel_stale_deposits", time.time() - start_time)
    logger.info(f"Cancelled {cancelled} ads awaiting deposit past the {deadline_hours}h deadline")
    return cancelled


async def reset_manual_jumps(db: AsyncSession) -> int:
    start_time = time.time()
    try:
        result = await db.execute(
            update(Ad)
            .where(
                Ad.status == AdStatus.ACTIVE,
                Ad.manual_jump_per_day > 0,
                Ad.manual_jump_used_today > 0,
            )
            .values(manual_jump_used_today=0)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    reset = result.rowcount
    record_housekeeping("reset_manual_jumps", reset)
    record_job_duration("reset_manual_jumps", time.time() - start_time)
    logger.info(f"Reset manual jump counters on {reset} ads")
    return reset


def _expiry_copy(title: str, days_left: int) -> tuple[str, str]:
    if days_left == 0:
        return "Your ad expires today", f'"{title}" expires today. Renew it to keep it listed.'
    return (
        f"Your ad expires in {days_left} day{'s' if days_left > 1 else ''}",
        f'"{title}" expires in {days_left} day{"s" if days_left > 1 else ""}. Renew it to keep it listed.',
    )


def _expiry_email_html(message: str, link: str) -> str:
    return (
        f"<p>{message}</p>"
        f'<p><a href="{link}">Manage your ad</a></p>'
    )


async def _already_notified(db: AsyncSession, ad_id: str, kind: str, now: datetime) -> bool:
    result = await db.execute(
        select(Notification.id)
        .where(
            Notification.ad_id == ad_id,
            Notification.kind == kind,
            Notification.created_at >= now - NOTICE_DEDUPE_WINDOW,
        )
        .limit(1)
    )
    return result.first() is not None


async def notify_expiring_ads(db: AsyncSession, now: Optional[datetime] = None) -> NoticeReport:
    """
    Send D-3, D-1 and D-0 expiry notices.

    Days are counted in local calendar days: an ad is D-n when its end_date
    falls on the local date n days after today. Emails are queued only
    after the notification rows are committed.
    """
    start_time = time.time()
    now = now or utcnow()
    today = to_local(now).date()
    site_url = get_settings().site_url
    report = NoticeReport()
    outbox = []

    try:
        for days_left in EXPIRY_NOTICE_DAYS:
            kind = f"AD_EXPIRY_D{days_left}"
            day_start, day_end = local_day_bounds(today + timedelta(days=days_left))
            result = await db.execute(
                select(Ad.id, Ad.user_id, Ad.title, User.email)
                .join(User, User.id == Ad.user_id)
                .where(
                    Ad.status == AdStatus.ACTIVE,
                    Ad.end_date >= day_start,
                    Ad.end_date < day_end,
                )
            )
            sent = 0
            for ad_id, user_id, title, email in result.all():
                if await _already_notified(db, ad_id, kind, now):
                    report.skipped += 1
                    continue
                subject, message = _expiry_copy(title, days_left)
                link = f"/my/ads/{ad_id}"
                notify(db, user_id, subject, message, link=link, kind=kind, ad_id=ad_id, now=now)
                outbox.append((email, subject, _expiry_email_html(message, f"{site_url}{link}")))
                sent += 1
            report.kinds[kind] = sent
            report.notified += sent
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    for email, subject, html in outbox:
        if dispatch_email(email, subject, html):
            report.emailed += 1

    record_housekeeping("notify_expiring_ads", report.notified)
    record_job_duration("notify_expiring_ads", time.time() - start_time)
    logger.info(
        f"Expiry notices: {report.notified} sent, {report.skipped} already sent, {report.emailed} emails queued"
    )
    return report
