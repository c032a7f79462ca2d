"""
Tests for the jump scheduler

Tests cover:
- Manual jump success, cooldown and quota
- Eligibility (status, FREE tier, products without manual jumps)
- Concurrent manual jumps never exceed the daily quota
- Business-hours split of the automatic quota
- Automatic jumps spread evenly over a 12h window
"""

import asyncio
from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select

from jobboard.errors import CooldownActive, Forbidden, QuotaExhausted, StateConflict
from jobboard.models import AdStatus, JumpLog, JumpType
from jobboard.services import lifecycle
from jobboard.services.jumps import (
    auto_jump_interval,
    auto_jump_quota,
    is_business_hours,
    manual_jump,
    run_auto_jump,
)

COOLDOWN = timedelta(minutes=30)


async def jump_count(db, ad_id, jump_type) -> int:
    return await db.scalar(
        select(func.count(JumpLog.id)).where(JumpLog.ad_id == ad_id, JumpLog.type == jump_type)
    )


class TestManualJump:
    """Test owner-triggered jumps."""

    @pytest.mark.asyncio
    async def test_jump_refreshes_rank(self, db, make_user, make_ad, now):
        user = await make_user()
        ad = await make_ad(user, product_id="VIP")

        result = await manual_jump(db, user, ad.id, now=now, cooldown=COOLDOWN)

        assert result.remaining == 17
        assert result.next_available == now + COOLDOWN
        current = await lifecycle.get_ad(db, ad.id)
        assert current.last_jumped_at == now
        assert current.last_manual_jump_at == now
        assert current.manual_jump_used_today == 1
        assert await jump_count(db, ad.id, JumpType.MANUAL) == 1

    @pytest.mark.asyncio
    async def test_cooldown_reports_exact_next_available(self, db, make_user, make_ad, now):
        user = await make_user()
        ad = await make_ad(user, product_id="VIP")
        ad_id = ad.id
        await manual_jump(db, user, ad_id, now=now, cooldown=COOLDOWN)

        with pytest.raises(CooldownActive) as exc_info:
            await manual_jump(db, user, ad_id, now=now + timedelta(minutes=10), cooldown=COOLDOWN)
        assert exc_info.value.extra["nextAvailable"] == (now + COOLDOWN).isoformat()
        assert exc_info.value.extra["remainingMinutes"] == 20

        # A rejected jump rolls the session back
        await db.refresh(user)
        with pytest.raises(CooldownActive) as exc_info:
            await manual_jump(db, user, ad_id, now=now + timedelta(minutes=29, seconds=30), cooldown=COOLDOWN)
        assert exc_info.value.extra["nextAvailable"] == (now + COOLDOWN).isoformat()
        assert exc_info.value.extra["remainingMinutes"] == 1

        await db.refresh(user)
        result = await manual_jump(db, user, ad_id, now=now + COOLDOWN, cooldown=COOLDOWN)
        assert result.remaining == 16
        assert await jump_count(db, ad_id, JumpType.MANUAL) == 2

    @pytest.mark.asyncio
    async def test_quota_exhausted(self, db, make_user, make_ad, now):
        user = await make_user()
        ad = await make_ad(user, product_id="RECOMMEND", manual_jump_used_today=3)
        ad_id = ad.id

        with pytest.raises(QuotaExhausted):
            await manual_jump(db, user, ad_id, now=now, cooldown=COOLDOWN)
        assert await jump_count(db, ad_id, JumpType.MANUAL) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "product_id,status",
        [("FREE", AdStatus.ACTIVE), ("LINE", AdStatus.ACTIVE), ("VIP", AdStatus.EXPIRED),
         ("VIP", AdStatus.PENDING_REVIEW)],
    )
    async def test_ineligible_ads(self, db, make_user, make_ad, now, product_id, status):
        user = await make_user()
        ad = await make_ad(user, product_id=product_id, status=status)
        ad_id = ad.id

        with pytest.raises(StateConflict):
            await manual_jump(db, user, ad_id, now=now, cooldown=COOLDOWN)

        current = await lifecycle.get_ad(db, ad_id)
        assert current.manual_jump_used_today == 0

    @pytest.mark.asyncio
    async def test_only_owner_can_jump(self, db, make_user, make_ad, now):
        owner = await make_user()
        other = await make_user()
        ad = await make_ad(owner)
        with pytest.raises(Forbidden):
            await manual_jump(db, other, ad.id, now=now, cooldown=COOLDOWN)

    @pytest.mark.asyncio
    async def test_concurrent_jumps_respect_quota(self, db, session_factory, make_user, make_ad, now):
        user = await make_user()
        ad = await make_ad(user, product_id="RECOMMEND")
        assert ad.manual_jump_per_day == 3

        async def attempt():
            async with session_factory() as session:
                return await manual_jump(session, user, ad.id, now=now, cooldown=timedelta(0))

        outcomes = await asyncio.gather(*(attempt() for _ in range(6)), return_exceptions=True)

        successes = [o for o in outcomes if not isinstance(o, BaseException)]
        failures = [o for o in outcomes if isinstance(o, BaseException)]
        assert len(successes) == 3
        assert all(isinstance(f, QuotaExhausted) for f in failures)

        current = await lifecycle.get_ad(db, ad.id)
        assert current.manual_jump_used_today == 3
        assert await jump_count(db, ad.id, JumpType.MANUAL) == 3


class TestAutoJumpQuota:
    """Test the 70/30 business-hours split."""

    @pytest.mark.parametrize(
        "per_day,business,expected",
        [(10, True, 7), (10, False, 3), (42, True, 30), (42, False, 12),
         (12, True, 9), (12, False, 3), (1, True, 1), (1, False, 0), (0, True, 0)],
    )
    def test_quota(self, per_day, business, expected):
        assert auto_jump_quota(per_day, business) == expected

    def test_interval_spreads_over_window(self):
        assert auto_jump_interval(10, False) == timedelta(hours=4)
        assert auto_jump_interval(24, True) == timedelta(hours=12) / 17

    def test_no_interval_without_jumps(self):
        assert auto_jump_interval(1, False) is None

    @pytest.mark.parametrize(
        "utc_hour,minute,expected",
        [(9, 0, True), (3, 0, False), (20, 59, True), (21, 0, False), (8, 59, False), (15, 0, True)],
    )
    def test_business_hours_in_local_time(self, utc_hour, minute, expected):
        # Asia/Seoul is UTC+9
        assert is_business_hours(datetime(2025, 3, 10, utc_hour, minute)) is expected


class TestRunAutoJump:
    """Test the periodic automatic jump job."""

    @staticmethod
    async def run_window(session_factory, window_start: datetime) -> None:
        for tick in range(72):
            await run_auto_jump(session_factory, now=window_start + timedelta(minutes=10 * tick))

    @pytest.mark.asyncio
    async def test_business_window_gets_seventy_percent(self, db, session_factory, make_user, make_ad):
        user = await make_user()
        ad = await make_ad(user, product_id="LINE", auto_jump_per_day=10)

        # 09:00 UTC = 18:00 local
        await self.run_window(session_factory, datetime(2025, 3, 10, 9, 0))

        assert await jump_count(db, ad.id, JumpType.AUTO) == 7

    @pytest.mark.asyncio
    async def test_off_window_gets_thirty_percent(self, db, session_factory, make_user, make_ad):
        user = await make_user()
        ad = await make_ad(user, product_id="LINE", auto_jump_per_day=10)

        # 21:00 UTC = 06:00 local
        await self.run_window(session_factory, datetime(2025, 3, 10, 21, 0))

        assert await jump_count(db, ad.id, JumpType.AUTO) == 3

    @pytest.mark.asyncio
    async def test_skips_ineligible_ads(self, db, session_factory, make_user, make_ad, now):
        user = await make_user()
        free_ad = await make_ad(user, product_id="FREE", duration_days=0)
        expired = await make_ad(user, product_id="VIP", status=AdStatus.EXPIRED)
        outside_window = await make_ad(
            user, product_id="VIP", start_date=now + timedelta(days=1), end_date=now + timedelta(days=31)
        )

        report = await run_auto_jump(session_factory, now=now)

        assert report.processed == 0
        for ad in (free_ad, expired, outside_window):
            assert await jump_count(db, ad.id, JumpType.AUTO) == 0

    @pytest.mark.asyncio
    async def test_processes_in_batches(self, db, session_factory, make_user, make_ad, now):
        user = await make_user()
        ads = [await make_ad(user, product_id="VIP") for _ in range(5)]

        report = await run_auto_jump(session_factory, now=now, batch_size=2)

        assert report.processed == 5
        assert report.jumped == 5
        assert report.failed == 0
        assert report.business_hours is False
        assert report.local_hour == 12
        for ad in ads:
            current = await lifecycle.get_ad(db, ad.id)
            assert current.last_jumped_at == now

        # Same tick again: interval not elapsed
        again = await run_auto_jump(session_factory, now=now, batch_size=2)
        assert again.jumped == 0
