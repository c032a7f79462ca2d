"""
Authentication and capability checks

Sessions are HS256 JWTs (python-jose) carrying the user id and role, sent as
the ``session_token`` cookie or an ``Authorization: Bearer`` header.

Authorization is centralised in ``authorize()``: each operation names a
Capability and receives an explicit AccessDecision, so endpoints never
compare role strings themselves.

Cron endpoints use a separate shared secret (``Authorization: Bearer
<CRON_SECRET>``).
"""

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional

from fastapi import Depends, Request
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from jobboard.config import get_settings
from jobboard.database import get_db
from jobboard.errors import Forbidden, Unauthenticated
from jobboard.models import User, UserRole

settings = get_settings()

ALGORITHM = "HS256"
TOKEN_EXPIRE_DAYS = 30
COOKIE_NAME = "session_token"
PBKDF2_ITERATIONS = 260_000


def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        _, iterations, salt, expected = password_hash.split("$")
    except ValueError:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


def create_session_token(user: User) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=TOKEN_EXPIRE_DAYS)
    role = user.role.value if isinstance(user.role, UserRole) else user.role
    to_encode = {"exp": expire, "sub": user.id, "role": role}
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def decode_session_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    return None


async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)) -> User:
    token = request.cookies.get(COOKIE_NAME) or _bearer_token(request)
    payload = decode_session_token(token) if token else None
    if not payload or not payload.get("sub"):
        raise Unauthenticated("Not authenticated")

    result = await db.execute(select(User).where(User.id == payload["sub"]))
    user = result.scalar_one_or_none()
    if user is None:
        raise Unauthenticated("Account no longer exists")
    return user


async def verify_cron_auth(request: Request) -> None:
    token = _bearer_token(request)
    if not token or not hmac.compare_digest(token, settings.cron_secret):
        raise Unauthenticated("Unauthorized")


# ==================== Capabilities ====================


class Capability(str, Enum):
    CREATE_AD = "create_ad"
    MANAGE_OWN_AD = "manage_own_ad"
    CONFIRM_OWN_PAYMENT = "confirm_own_payment"
    MODERATE_ADS = "moderate_ads"
    MANAGE_PAYMENTS = "manage_payments"
    MANAGE_USERS = "manage_users"


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str = ""


_ROLE_CAPABILITIES = {
    UserRole.BUSINESS: {Capability.CREATE_AD, Capability.MANAGE_OWN_AD, Capability.CONFIRM_OWN_PAYMENT},
    UserRole.JOBSEEKER: set(),
    UserRole.ADMIN: {
        Capability.MODERATE_ADS,
        Capability.MANAGE_PAYMENTS,
        Capability.MANAGE_USERS,
    },
}

# Capabilities that additionally require owning the resource
_OWNERSHIP_CAPABILITIES = {Capability.MANAGE_OWN_AD, Capability.CONFIRM_OWN_PAYMENT}


def authorize(user: User, capability: Capability, resource: Optional[Any] = None) -> AccessDecision:
    """
    Decide whether ``user`` may exercise ``capability`` on ``resource``.

    Args:
        user: Authenticated user
        capability: Operation being attempted
        resource: Ad or Payment for ownership-scoped capabilities

    Returns:
        AccessDecision with the denial reason when not allowed
    """
    role = UserRole(user.role)
    if capability not in _ROLE_CAPABILITIES.get(role, set()):
        return AccessDecision(False, f"{role.value.lower()} accounts cannot {capability.value.replace('_', ' ')}")

    if capability in _OWNERSHIP_CAPABILITIES:
        if resource is None or getattr(resource, "user_id", None) != user.id:
            return AccessDecision(False, "You do not own this resource")

    return AccessDecision(True)


def require(user: User, capability: Capability, resource: Optional[Any] = None) -> None:
    decision = authorize(user, capability, resource)
    if not decision.allowed:
        raise Forbidden(decision.reason, capability=capability.value)


def requires(capability: Capability):
    """
    Build a dependency resolving the current user after checking a
    role-level capability (no resource).

    Usage:
        @router.post("/ads/{ad_id}/approve")
        async def approve(admin: User = Depends(requires(Capability.MODERATE_ADS))): ...
    """

    async def dependency(user: User = Depends(get_current_user)) -> User:
        require(user, capability)
        return user

    return dependency
