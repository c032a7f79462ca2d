"""
Background Job Scheduler - Periodic ad housekeeping

Runs the same jobs the /cron endpoints expose, in-process with APScheduler.
Enabled with ENABLE_SCHEDULER=true; deployments driven by an external cron
leave it off so each job runs exactly once per tick.

Default Schedule (local timezone):
    auto_jump           every 10 minutes
    expire_ads          every hour
    expire_pending      every hour
    reset_manual_jump   daily at 00:00
    notify_expiry       daily at 09:00
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from jobboard.config import get_settings
from jobboard.database import async_session
from jobboard.services.housekeeping import (
    cancel_stale_deposits,
    expire_ads,
    notify_expiring_ads,
    reset_manual_jumps,
)
from jobboard.services.jumps import run_auto_jump

logger = logging.getLogger(__name__)

settings = get_settings()
scheduler = AsyncIOScheduler(timezone=settings.local_timezone)


async def auto_jump_job():
    await run_auto_jump(async_session)


async def expire_ads_job():
    async with async_session() as db:
        await expire_ads(db)


async def expire_pending_job():
    async with async_session() as db:
        await cancel_stale_deposits(db)


async def reset_manual_jump_job():
    async with async_session() as db:
        await reset_manual_jumps(db)


async def notify_expiry_job():
    async with async_session() as db:
        await notify_expiring_ads(db)


def start_scheduler():
    """Start the background scheduler"""
    scheduler.add_job(
        auto_jump_job,
        trigger=IntervalTrigger(minutes=10),
        id="auto_jump",
        replace_existing=True,
        max_instances=1,
    )
    scheduler.add_job(
        expire_ads_job,
        trigger=IntervalTrigger(hours=1),
        id="expire_ads",
        replace_existing=True,
    )
    scheduler.add_job(
        expire_pending_job,
        trigger=IntervalTrigger(hours=1),
        id="expire_pending",
        replace_existing=True,
    )
    scheduler.add_job(
        reset_manual_jump_job,
        trigger=CronTrigger(hour=0, minute=0, timezone=settings.local_timezone),
        id="reset_manual_jump",
        replace_existing=True,
    )
    scheduler.add_job(
        notify_expiry_job,
        trigger=CronTrigger(hour=9, minute=0, timezone=settings.local_timezone),
        id="notify_expiry",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(f"Scheduler started with {len(scheduler.get_jobs())} housekeeping jobs")


def stop_scheduler():
    """Stop the background scheduler"""
    scheduler.shutdown()
