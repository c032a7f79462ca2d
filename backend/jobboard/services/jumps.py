"""
Jump Scheduler - Refreshing an ad's recency rank

Manual jump (owner-triggered):
    ACTIVE, non-FREE, manual_jump_per_day > 0, quota left for today and at
    least the cooldown (30 min) since the previous manual jump. The checks
    and the increment are one conditional UPDATE, so parallel requests can
    never push manual_jump_used_today past manual_jump_per_day. The exact
    cooldown end (last_manual_jump_at + cooldown) is authoritative; the
    minutes in the message are rounded up for display only.

Automatic jump (periodic, every 10 minutes):
    The day is split into two 12h windows in local time:
        business hours 18:00-06:00  ceil(70% of auto_jump_per_day)
        off hours      06:00-18:00  floor(30% of auto_jump_per_day)
    Jumps in a window are spread evenly: an ad jumps when at least
    12h / jumps_in_window has elapsed since last_jumped_at.

    Ads are processed in chunks of 50; the ads of one chunk run concurrently,
    each in its own session, and chunks run one after another.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from jobboard.clock import to_local, utcnow
from jobboard.config import get_settings
from jobboard.errors import CooldownActive, DomainError, QuotaExhausted, StateConflict
from jobboard.middleware.metrics import record_job_duration, record_jump, record_jump_rejected
from jobboard.models import Ad, AdStatus, JumpLog, JumpType, User
from jobboard.services.lifecycle import get_ad, get_owned_ad
from jobboard.services.pricing import FREE_PRODUCT_ID

logger = logging.getLogger(__name__)

WINDOW_LENGTH = timedelta(hours=12)
BUSINESS_HOURS_START = 18
BUSINESS_HOURS_END = 6


@dataclass
class ManualJumpResult:
    remaining: int
    next_available: datetime


@dataclass
class AutoJumpReport:
    processed: int
    jumped: int
    failed: int
    business_hours: bool
    local_hour: int


def default_cooldown() -> timedelta:
    return timedelta(minutes=get_settings().manual_jump_cooldown_minutes)


# ==================== Manual jump ====================


def _diagnose_rejection(ad: Ad, now: datetime, cooldown: timedelta) -> DomainError:
    if ad.status != AdStatus.ACTIVE:
        return StateConflict("Only active ads can jump", status=ad.status.value)
    if ad.product_id == FREE_PRODUCT_ID:
        return StateConflict("Free listings cannot use manual jumps, upgrade to a paid tier")
    if ad.manual_jump_per_day == 0:
        return StateConflict("This product does not include manual jumps")
    if ad.manual_jump_used_today >= ad.manual_jump_per_day:
        return QuotaExhausted(
            "Manual jumps for today are used up",
            used=ad.manual_jump_used_today,
            limit=ad.manual_jump_per_day,
        )
    if ad.last_manual_jump_at is not None:
        next_available = ad.last_manual_jump_at + cooldown
        if now < next_available:
            remaining_minutes = math.ceil((next_available - now).total_seconds() / 60)
            return CooldownActive(
                f"Cooldown active (available in {remaining_minutes} min)",
                nextAvailable=next_available.isoformat(),
                remainingMinutes=remaining_minutes,
            )
    return StateConflict("Jump could not be applied, reload and try again")


async def manual_jump(
    db: AsyncSession,
    user: User,
    ad_id: str,
    now: Optional[datetime] = None,
    cooldown: Optional[timedelta] = None,
) -> ManualJumpResult:
    """
    Bump an ad to the top of the listing on the owner's request.

    Raises:
        StateConflict: not ACTIVE, FREE tier or no manual quota
        QuotaExhausted: daily quota used
        CooldownActive: inside the cooldown, carries nextAvailable
    """
    await get_owned_ad(db, user, ad_id)
    now = now or utcnow()
    cooldown = default_cooldown() if cooldown is None else cooldown

    try:
        result = await db.execute(
            update(Ad)
            .where(
                Ad.id == ad_id,
                Ad.status == AdStatus.ACTIVE,
                Ad.product_id != FREE_PRODUCT_ID,
                Ad.manual_jump_per_day > 0,
                Ad.manual_jump_used_today < Ad.manual_jump_per_day,
                or_(Ad.last_manual_jump_at.is_(None), Ad.last_manual_jump_at <= now - cooldown),
            )
            .values(
                last_jumped_at=now,
                last_manual_jump_at=now,
                manual_jump_used_today=Ad.manual_jump_used_today + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await db.rollback()
            error = _diagnose_rejection(await get_ad(db, ad_id), now, cooldown)
            record_jump_rejected(error.code)
            logger.info(f"Manual jump rejected for ad {ad_id}: {error.code}")
            raise error

        db.add(JumpLog(ad_id=ad_id, user_id=user.id, type=JumpType.MANUAL, jumped_at=now))
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    ad = await get_ad(db, ad_id)
    record_jump(JumpType.MANUAL.value)
    return ManualJumpResult(
        remaining=max(0, ad.manual_jump_per_day - ad.manual_jump_used_today),
        next_available=now + cooldown,
    )


# ==================== Automatic jump ====================


def is_business_hours(now: datetime) -> bool:
    hour = to_local(now).hour
    return hour >= BUSINESS_HOURS_START or hour < BUSINESS_HOURS_END


def auto_jump_quota(auto_jump_per_day: int, business_hours: bool) -> int:
    """Jumps allotted to the current 12h window (integer ceil 70% / floor 30%)."""
    if business_hours:
        return (auto_jump_per_day * 7 + 9) // 10
    return (auto_jump_per_day * 3) // 10


def auto_jump_interval(auto_jump_per_day: int, business_hours: bool) -> Optional[timedelta]:
    jumps = auto_jump_quota(auto_jump_per_day, business_hours)
    if jumps == 0:
        return None
    return WINDOW_LENGTH / jumps


async def _auto_jump_one(
    session_factory: Callable[[], AsyncSession],
    ad_id: str,
    user_id: str,
    auto_jump_per_day: int,
    last_jumped_at: datetime,
    now: datetime,
    business_hours: bool,
) -> bool:
    interval = auto_jump_interval(auto_jump_per_day, business_hours)
    if interval is None or now - last_jumped_at < interval:
        return False

    async with session_factory() as db:
        try:
            result = await db.execute(
                update(Ad)
                .where(
                    Ad.id == ad_id,
                    Ad.status == AdStatus.ACTIVE,
                    Ad.last_jumped_at <= now - interval,
                )
                .values(last_jumped_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await db.rollback()
                return False
            db.add(JumpLog(ad_id=ad_id, user_id=user_id, type=JumpType.AUTO, jumped_at=now))
            await db.commit()
        except Exception:
            await db.rollback()
            raise
    return True


async def run_auto_jump(
    session_factory: Callable[[], AsyncSession],
    now: Optional[datetime] = None,
    batch_size: Optional[int] = None,
) -> AutoJumpReport:
    """
    One tick of the automatic jump job.

    Args:
        session_factory: Creates independent sessions (one per ad)
        now: Tick time (defaults to current UTC time)
        batch_size: Ads per concurrent chunk (default from settings)
    """
    start_time = time.time()
    now = now or utcnow()
    batch_size = batch_size or get_settings().auto_jump_batch_size
    business_hours = is_business_hours(now)

    async with session_factory() as db:
        result = await db.execute(
            select(Ad.id, Ad.user_id, Ad.auto_jump_per_day, Ad.last_jumped_at).where(
                Ad.status == AdStatus.ACTIVE,
                Ad.start_date <= now,
                Ad.end_date >= now,
                Ad.auto_jump_per_day > 0,
            )
        )
        candidates = result.all()

    jumped = 0
    failed = 0
    for offset in range(0, len(candidates), batch_size):
        chunk = candidates[offset:offset + batch_size]
        outcomes = await asyncio.gather(
            *(
                _auto_jump_one(session_factory, row[0], row[1], row[2], row[3], now, business_hours)
                for row in chunk
            ),
            return_exceptions=True,
        )
        for row, outcome in zip(chunk, outcomes):
            if isinstance(outcome, BaseException):
                failed += 1
                logger.error(f"Auto-jump failed for ad {row[0]}: {outcome}")
            elif outcome:
                jumped += 1
                record_jump(JumpType.AUTO.value)

    record_job_duration("auto_jump", time.time() - start_time)
    report = AutoJumpReport(
        processed=len(candidates),
        jumped=jumped,
        failed=failed,
        business_hours=business_hours,
        local_hour=to_local(now).hour,
    )
    logger.info(f"Auto-jump: {report.jumped}/{report.processed} ads jumped, {report.failed} failed")
    return report
