"""
Shared fixtures

Every test gets its own SQLite file (tmp_path) so concurrent sessions in one
test really contend for the same rows.
"""

import os

# Settings are cached on first import; configure before importing jobboard
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ["RESEND_API_KEY"] = ""
os.environ["TOSS_SECRET_KEY"] = ""
os.environ["NTS_API_KEY"] = ""

from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from jobboard.auth import hash_password
from jobboard.database import Base, configure_engine
from jobboard.models import Ad, AdStatus, Payment, PaymentMethod, PaymentStatus, User, UserRole
from jobboard.services.pricing import build_quote, get_product
from jobboard.schemas.snapshot import PurchaseSnapshot

# 03:00 UTC = 12:00 in Asia/Seoul (off hours)
NOW = datetime(2025, 3, 10, 3, 0, 0)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest_asyncio.fixture
async def engine(tmp_path):
    test_engine = configure_engine(create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"))
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(db):
    """Factory creating committed users."""
    counter = {"n": 0}

    async def _make(role: UserRole = UserRole.BUSINESS, **fields) -> User:
        counter["n"] += 1
        user = User(
            email=fields.pop("email", f"user{counter['n']}@example.com"),
            password_hash=hash_password(fields.pop("password", "password123")),
            name=fields.pop("name", f"User {counter['n']}"),
            role=role,
            **fields,
        )
        db.add(user)
        await db.commit()
        return user

    return _make


@pytest.fixture
def make_ad(db):
    """
    Factory creating committed ads with the product's feature grants.

    ACTIVE ads get a window that started a day before NOW.
    """

    async def _make(
        user: User,
        product_id: str = "VIP",
        status: AdStatus = AdStatus.ACTIVE,
        duration_days: int = 30,
        **fields,
    ) -> Ad:
        product = get_product(product_id)
        start = NOW - timedelta(days=1)
        values = dict(
            user_id=user.id,
            title="Line cook wanted",
            business_name="Seoul Kitchen",
            business_type="restaurant",
            contact_phone="01012345678",
            salary_text="12,000 KRW / hour",
            description="Evening shifts, experience preferred.",
            regions=["Seoul"],
            status=status,
            product_id=product_id,
            duration_days=duration_days,
            total_amount=0,
            max_edits=product.max_edits,
            auto_jump_per_day=product.auto_jump_per_day,
            manual_jump_per_day=product.manual_jump_per_day,
            last_jumped_at=start,
            created_at=start,
        )
        if status in (AdStatus.ACTIVE, AdStatus.EXPIRED):
            values["start_date"] = start
            values["end_date"] = start + timedelta(days=duration_days or 3650)
        values.update(fields)
        ad = Ad(**values)
        db.add(ad)
        await db.commit()
        return ad

    return _make


@pytest.fixture
def make_payment(db):
    """Factory creating a PENDING purchase payment for an ad."""

    async def _make(
        ad: Ad,
        product_id: str = "VIP",
        duration_days: int = 30,
        method: PaymentMethod = PaymentMethod.BANK_TRANSFER,
        **fields,
    ) -> Payment:
        quote = build_quote(product_id, duration_days)
        snapshot = PurchaseSnapshot(
            product=quote.product,
            options=quote.options,
            duration=quote.duration,
            features=quote.features,
            breakdown=quote.breakdown,
        )
        payment = Payment(
            order_id=fields.pop("order_id", f"ADN-test-{ad.id[:8]}"),
            user_id=ad.user_id,
            ad_id=ad.id,
            amount=quote.breakdown.total,
            method=method,
            status=fields.pop("status", PaymentStatus.PENDING),
            item_snapshot=snapshot.model_dump(mode="json"),
            created_at=NOW,
            **fields,
        )
        db.add(payment)
        await db.commit()
        return payment

    return _make
