"""
End-to-end tests for the HTTP API

Tests cover:
- Registration, login and session cookies
- Error body shape ({"error", "code"}) and request validation
- Checkout -> admin approval -> public listing -> manual jump
- Role checks on admin endpoints
- Cron secret enforcement
- Login rate limiting
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from jobboard.api.ads import get_registry_client
from jobboard.api.cron import get_session_factory
from jobboard.auth import hash_password
from jobboard.database import Base, configure_engine, get_db
from jobboard.main import app
from jobboard.models import User, UserRole
from jobboard.services.clients import RegistryResult, RegistryStatus
from jobboard.services.pricing import build_quote
from jobboard.services.rate_limit import get_rate_limiter

CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}

AD_PAYLOAD = {
    "business_name": "Seoul Kitchen",
    "business_type": "restaurant",
    "contact_phone": "010-1234-5678",
    "title": "Line cook wanted",
    "salary_text": "12,000 KRW / hour",
    "description": "Evening shifts, experience preferred.",
    "regions": ["Seoul"],
    "product_id": "VIP",
    "duration_days": 30,
    "payment_method": "BANK_TRANSFER",
}


@pytest.fixture
def api(tmp_path):
    """TestClient wired to a throwaway SQLite file."""
    engine = configure_engine(
        create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", poolclass=NullPool)
    )
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def create_schema():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_schema())

    async def override_get_db():
        async with factory() as session:
            yield session

    registry = SimpleNamespace(lookup=AsyncMock(return_value=RegistryResult(RegistryStatus.UNAVAILABLE)))

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: factory
    app.dependency_overrides[get_registry_client] = lambda: registry
    get_rate_limiter().reset()

    yield SimpleNamespace(client=TestClient(app), factory=factory, registry=registry)

    app.dependency_overrides.clear()
    get_rate_limiter().reset()
    asyncio.run(engine.dispose())


def register(client, email="owner@example.com", password="password123", role="BUSINESS"):
    return client.post(
        "/auth/register",
        json={"email": email, "password": password, "name": "Owner", "role": role},
    )


def login_headers(client, email, password="password123"):
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


def seed_admin(factory, email="admin@example.com", password="adminpass1"):
    async def _seed():
        async with factory() as session:
            session.add(
                User(email=email, password_hash=hash_password(password), name="Admin", role=UserRole.ADMIN)
            )
            await session.commit()

    asyncio.run(_seed())
    return email, password


class TestHealth:
    def test_health(self, api):
        response = api.client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestAuthEndpoints:
    """Test registration and sessions."""

    def test_register_sets_session_cookie(self, api):
        response = register(api.client, email="Owner@Example.com")

        assert response.status_code == 201
        body = response.json()
        assert body["email"] == "owner@example.com"
        assert body["role"] == "BUSINESS"
        assert body["grade"] == "none"
        assert "session_token" in response.cookies

        me = api.client.get("/auth/me")
        assert me.status_code == 200
        assert me.json()["id"] == body["id"]

    def test_duplicate_email(self, api):
        register(api.client)
        response = register(api.client)
        assert response.status_code == 409
        assert response.json()["code"] == "EMAIL_TAKEN"

    def test_bad_password(self, api):
        register(api.client)
        response = api.client.post("/auth/login", json={"email": "owner@example.com", "password": "nope"})
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid email or password", "code": "UNAUTHENTICATED"}

    def test_me_requires_session(self, api):
        response = api.client.get("/auth/me")
        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHENTICATED"

    def test_validation_error_shape(self, api):
        response = register(api.client, password="short")
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert any(detail["field"] == "password" for detail in body["details"])

    def test_login_rate_limited(self, api):
        register(api.client)
        statuses = [
            api.client.post("/auth/login", json={"email": "owner@example.com", "password": "nope"}).status_code
            for _ in range(11)
        ]
        assert statuses[:10] == [401] * 10
        assert statuses[10] == 429

    def test_delete_account(self, api):
        register(api.client)
        response = api.client.delete("/auth/me")
        assert response.status_code == 204
        assert api.client.post(
            "/auth/login", json={"email": "owner@example.com", "password": "password123"}
        ).status_code == 401


class TestAdFlow:
    """Test checkout through to a live, jumpable ad."""

    def test_bank_transfer_checkout_to_jump(self, api):
        register(api.client)
        owner = login_headers(api.client, "owner@example.com")
        admin = login_headers(api.client, *seed_admin(api.factory))

        checkout = api.client.post("/ads", json=AD_PAYLOAD, headers=owner)
        assert checkout.status_code == 201
        order = checkout.json()
        assert order["status"] == "PENDING_DEPOSIT"
        assert order["order_id"].startswith("ADN")
        assert order["amount"] == build_quote("VIP", 30).breakdown.total
        assert order["order_name"] == "VIP 30d"
        ad_id = order["ad_id"]

        # Not public until paid
        assert api.client.get(f"/ads/{ad_id}").status_code == 404

        pending = api.client.get("/admin/payments", headers=admin)
        assert pending.status_code == 200
        payment_id = next(p["id"] for p in pending.json() if p["order_id"] == order["order_id"])

        approved = api.client.post(f"/admin/payments/{payment_id}/approve", headers=admin)
        assert approved.status_code == 200
        assert approved.json()["kind"] == "purchase"

        listing = api.client.get("/ads", params={"product_id": "VIP"})
        assert listing.json()["total"] == 1

        detail = api.client.get(f"/ads/{ad_id}")
        assert detail.status_code == 200
        assert detail.json()["status"] == "ACTIVE"
        assert detail.json()["view_count"] == 1

        jump = api.client.post(f"/ads/{ad_id}/jump", headers=owner)
        assert jump.status_code == 200
        assert jump.json()["remaining"] == 17

        again = api.client.post(f"/ads/{ad_id}/jump", headers=owner)
        assert again.status_code == 429
        assert again.json()["code"] == "COOLDOWN_ACTIVE"
        assert "nextAvailable" in again.json()

        me = api.client.get("/auth/me", headers=owner)
        assert me.json()["total_paid_ad_days"] == 30
        assert me.json()["grade"] == "bronze"

    def test_second_approval_is_rejected(self, api):
        register(api.client)
        owner = login_headers(api.client, "owner@example.com")
        admin = login_headers(api.client, *seed_admin(api.factory))
        api.client.post("/ads", json=AD_PAYLOAD, headers=owner)
        payment_id = api.client.get("/admin/payments", headers=admin).json()[0]["id"]

        assert api.client.post(f"/admin/payments/{payment_id}/approve", headers=admin).status_code == 200
        response = api.client.post(f"/admin/payments/{payment_id}/approve", headers=admin)
        assert response.status_code == 409
        assert response.json()["code"] == "ALREADY_PROCESSED"

    def test_verify_business_falls_back_to_manual_review(self, api):
        register(api.client)
        owner = login_headers(api.client, "owner@example.com")
        ad_id = api.client.post("/ads", json=AD_PAYLOAD, headers=owner).json()["ad_id"]

        response = api.client.post(
            f"/ads/{ad_id}/verify-business", json={"business_number": "123-45-67890"}, headers=owner
        )
        assert response.status_code == 200
        assert response.json() == {"registry_status": "UNAVAILABLE", "verified": False, "manual_review": True}
        api.registry.lookup.assert_awaited_once_with("123-45-67890")

    def test_business_cannot_use_admin_endpoints(self, api):
        register(api.client)
        owner = login_headers(api.client, "owner@example.com")
        response = api.client.get("/admin/stats", headers=owner)
        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    def test_admin_stats(self, api):
        register(api.client)
        owner = login_headers(api.client, "owner@example.com")
        admin = login_headers(api.client, *seed_admin(api.factory))
        api.client.post("/ads", json=AD_PAYLOAD, headers=owner)

        stats = api.client.get("/admin/stats", headers=admin).json()
        assert stats["total_users"] == 2
        assert stats["ads_by_status"]["PENDING_DEPOSIT"] == 1
        assert stats["pending_payments"] == 1
        assert stats["approved_revenue"] == 0


class TestCronEndpoints:
    """Test shared-secret protected housekeeping triggers."""

    @pytest.mark.parametrize(
        "path",
        ["/cron/expire-ads", "/cron/expire-pending", "/cron/reset-manual-jump", "/cron/auto-jump", "/cron/notify-expiry"],
    )
    def test_requires_secret(self, api, path):
        assert api.client.post(path).status_code == 401
        assert api.client.post(path, headers={"Authorization": "Bearer wrong"}).status_code == 401

    def test_expire_ads(self, api):
        response = api.client.post("/cron/expire-ads", headers=CRON_HEADERS)
        assert response.status_code == 200
        assert response.json() == {"success": True, "expired": 0}

    def test_auto_jump_report(self, api):
        response = api.client.post("/cron/auto-jump", headers=CRON_HEADERS)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["processed"] == 0
        assert "business_hours" in body
