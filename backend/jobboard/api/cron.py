"""
Cron entry points

Each endpoint runs one housekeeping job and is safe to call repeatedly.
All require ``Authorization: Bearer <CRON_SECRET>``.
"""

from dataclasses import asdict
from typing import Callable

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from jobboard.database import async_session, get_db
from jobboard.auth import verify_cron_auth
from jobboard.services import housekeeping
from jobboard.services.jumps import run_auto_jump

router = APIRouter(dependencies=[Depends(verify_cron_auth)])


def get_session_factory() -> Callable[[], AsyncSession]:
    return async_session


@router.post("/expire-ads")
async def expire_ads(db: AsyncSession = Depends(get_db)):
    expired = await housekeeping.expire_ads(db)
    return {"success": True, "expired": expired}


@router.post("/expire-pending")
async def expire_pending(db: AsyncSession = Depends(get_db)):
    cancelled = await housekeeping.cancel_stale_deposits(db)
    return {"success": True, "cancelled": cancelled}


@router.post("/reset-manual-jump")
async def reset_manual_jump(db: AsyncSession = Depends(get_db)):
    reset = await housekeeping.reset_manual_jumps(db)
    return {"success": True, "reset": reset}


@router.post("/auto-jump")
async def auto_jump(session_factory: Callable[[], AsyncSession] = Depends(get_session_factory)):
    report = await run_auto_jump(session_factory)
    return {"success": True, **asdict(report)}


@router.post("/notify-expiry")
async def notify_expiry(db: AsyncSession = Depends(get_db)):
    report = await housekeeping.notify_expiring_ads(db)
    return {"success": True, **asdict(report)}
