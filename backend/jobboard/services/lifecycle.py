"""
Ad Lifecycle - State transitions of a listing

States:
    PENDING_DEPOSIT  bank transfer chosen, waiting for the deposit
    PENDING_REVIEW   card/wallet checkout or FREE listing, waiting for
                     confirmation or moderation
    ACTIVE           inside its [start_date, end_date) window
    EXPIRED          window elapsed, may be renewed
    REJECTED         refused by an admin (terminal)
    CANCELLED        deposit deadline elapsed (terminal)

Every guarded transition is a single conditional UPDATE (``WHERE status =
...``). When it matches no row the ad is re-read only to explain the
rejection, so a failed guard never leaves a partial change behind.

Paid upgrade and renew requests only create a PENDING payment here; the ad
itself changes when that payment is approved (see reconciliation).
"""

import logging
import secrets
import time
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from jobboard.auth import Capability, require
from jobboard.clock import utcnow
from jobboard.errors import (
    EditLimitReached,
    InsufficientCredits,
    NotFound,
    SlotsFull,
    StateConflict,
    ValidationFailed,
)
from jobboard.models import Ad, AdOption, AdStatus, Payment, PaymentMethod, PaymentStatus, User
from jobboard.schemas.ad import AdCreate, AdUpdate, RenewRequest, UpgradeRequest
from jobboard.schemas.snapshot import PurchaseSnapshot, RenewSnapshot, UpgradeSnapshot
from jobboard.services.clients.registry import (
    BusinessRegistryClient,
    RegistryResult,
    RegistryStatus,
    normalize_business_number,
)
from jobboard.services.notifications import notify
from jobboard.services.pricing import AdProduct, Quote, build_quote, get_product, validate_regions

logger = logging.getLogger(__name__)

# FREE listings run "unlimited"; the window still needs an end_date
UNLIMITED_WINDOW_DAYS = 3650

ORDER_PREFIX_NEW = "ADN"
ORDER_PREFIX_UPGRADE = "ADU"
ORDER_PREFIX_RENEW = "ADR"


def generate_order_id(prefix: str) -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def activation_window(now: datetime, duration_days: int) -> Tuple[datetime, datetime]:
    days = duration_days or UNLIMITED_WINDOW_DAYS
    return now, now + timedelta(days=days)


def _normalize_phone(phone: str) -> str:
    return phone.replace("-", "")


async def get_ad(db: AsyncSession, ad_id: str) -> Ad:
    result = await db.execute(
        select(Ad)
        .where(Ad.id == ad_id)
        .options(selectinload(Ad.options))
        .execution_options(populate_existing=True)
    )
    ad = result.scalar_one_or_none()
    if ad is None:
        raise NotFound("Ad not found")
    return ad


async def get_owned_ad(db: AsyncSession, user: User, ad_id: str) -> Ad:
    ad = await get_ad(db, ad_id)
    require(user, Capability.MANAGE_OWN_AD, ad)
    return ad


async def ensure_slot_available(db: AsyncSession, product: AdProduct) -> None:
    if product.max_slots is None:
        return
    result = await db.execute(
        select(func.count(Ad.id)).where(Ad.product_id == product.id, Ad.status == AdStatus.ACTIVE)
    )
    if (result.scalar() or 0) >= product.max_slots:
        raise SlotsFull(f"All {product.max_slots} {product.name} slots are taken")


def _build_options(quote: Quote, start: Optional[datetime] = None, end: Optional[datetime] = None):
    return [
        AdOption(
            option_id=line.id,
            value=line.value,
            duration_days=quote.duration,
            start_date=start,
            end_date=end,
        )
        for line in quote.options
    ]


# ==================== Checkout ====================


async def create_ad(
    db: AsyncSession,
    user: User,
    data: AdCreate,
    now: Optional[datetime] = None,
) -> Tuple[Ad, Optional[Payment]]:
    """
    Create an ad and its PENDING payment in one transaction.

    Initial state:
        FREE product      → PENDING_REVIEW, consumes one free ad credit
        BANK_TRANSFER     → PENDING_DEPOSIT
        CARD / KAKAO_PAY  → PENDING_REVIEW (until the gateway confirms)

    Returns:
        (ad, payment) - payment is None for FREE listings

    Raises:
        ValidationFailed, SlotsFull, InsufficientCredits
    """
    require(user, Capability.CREATE_AD)
    product = get_product(data.product_id)
    validate_regions(product, data.regions)
    quote = build_quote(data.product_id, data.duration_days, data.options, data.option_values)
    await ensure_slot_available(db, product)

    now = now or utcnow()
    if product.is_free:
        status = AdStatus.PENDING_REVIEW
    elif data.payment_method == PaymentMethod.BANK_TRANSFER:
        status = AdStatus.PENDING_DEPOSIT
    else:
        status = AdStatus.PENDING_REVIEW

    try:
        if product.is_free:
            consumed = await db.execute(
                update(User)
                .where(User.id == user.id, User.free_ad_credits > 0)
                .values(free_ad_credits=User.free_ad_credits - 1)
                .execution_options(synchronize_session=False)
            )
            if consumed.rowcount == 0:
                raise InsufficientCredits("No free ad credits left")

        ad = Ad(
            user_id=user.id,
            business_name=data.business_name,
            business_type=data.business_type,
            contact_phone=_normalize_phone(data.contact_phone),
            title=data.title,
            salary_text=data.salary_text,
            description=data.description,
            regions=list(data.regions),
            status=status,
            product_id=product.id,
            duration_days=quote.duration,
            total_amount=quote.breakdown.total,
            max_edits=quote.features.max_edits,
            auto_jump_per_day=quote.features.auto_jump_per_day,
            manual_jump_per_day=quote.features.manual_jump_per_day,
            last_jumped_at=now,
            created_at=now,
            options=_build_options(quote),
        )
        db.add(ad)
        await db.flush()

        payment = None
        if not product.is_free:
            snapshot = PurchaseSnapshot(
                product=quote.product,
                options=quote.options,
                duration=quote.duration,
                features=quote.features,
                breakdown=quote.breakdown,
            )
            payment = Payment(
                order_id=generate_order_id(ORDER_PREFIX_NEW),
                user_id=user.id,
                ad_id=ad.id,
                amount=quote.breakdown.total,
                method=data.payment_method,
                status=PaymentStatus.PENDING,
                item_snapshot=snapshot.model_dump(mode="json"),
                created_at=now,
            )
            db.add(payment)

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"Ad {ad.id} created as {status.value} ({product.id}, {quote.duration}d, {quote.breakdown.total})")
    return await get_ad(db, ad.id), payment


async def _create_change_order(
    db: AsyncSession,
    user: User,
    ad: Ad,
    snapshot,
    method: PaymentMethod,
    prefix: str,
    now: Optional[datetime],
) -> Payment:
    payment = Payment(
        order_id=generate_order_id(prefix),
        user_id=user.id,
        ad_id=ad.id,
        amount=snapshot.breakdown.total,
        method=method,
        status=PaymentStatus.PENDING,
        item_snapshot=snapshot.model_dump(mode="json"),
        created_at=now or utcnow(),
    )
    db.add(payment)
    await db.commit()
    logger.info(f"{snapshot.type.capitalize()} order {payment.order_id} created for ad {ad.id}")
    return payment


async def request_upgrade(
    db: AsyncSession,
    user: User,
    ad_id: str,
    data: UpgradeRequest,
    now: Optional[datetime] = None,
) -> Payment:
    """Price a move of an ACTIVE ad to a higher tier; applied on approval."""
    ad = await get_owned_ad(db, user, ad_id)
    if ad.status != AdStatus.ACTIVE:
        raise StateConflict("Only active ads can be upgraded", status=ad.status.value)

    current = get_product(ad.product_id)
    target = get_product(data.product_id)
    if target.is_free or target.rank >= current.rank:
        raise ValidationFailed("Choose a higher tier than the current one")

    quote = build_quote(target.id, data.duration_days, data.options, data.option_values)
    await ensure_slot_available(db, target)

    snapshot = UpgradeSnapshot(
        from_product_id=current.id,
        product=quote.product,
        options=quote.options,
        duration=quote.duration,
        features=quote.features,
        breakdown=quote.breakdown,
    )
    return await _create_change_order(db, user, ad, snapshot, data.payment_method, ORDER_PREFIX_UPGRADE, now)


async def request_renew(
    db: AsyncSession,
    user: User,
    ad_id: str,
    data: RenewRequest,
    now: Optional[datetime] = None,
) -> Payment:
    """Re-price an EXPIRED paid ad on its current tier; revived on approval."""
    ad = await get_owned_ad(db, user, ad_id)
    if ad.status != AdStatus.EXPIRED:
        raise StateConflict("Only expired ads can be renewed", status=ad.status.value)

    product = get_product(ad.product_id)
    if product.is_free:
        raise ValidationFailed("Free listings do not need renewal")

    quote = build_quote(product.id, data.duration_days, data.options, data.option_values)
    await ensure_slot_available(db, product)

    snapshot = RenewSnapshot(
        product=quote.product,
        options=quote.options,
        duration=quote.duration,
        features=quote.features,
        breakdown=quote.breakdown,
    )
    return await _create_change_order(db, user, ad, snapshot, data.payment_method, ORDER_PREFIX_RENEW, now)


# ==================== Moderation ====================


async def approve_ad(db: AsyncSession, ad_id: str, now: Optional[datetime] = None) -> Ad:
    """PENDING_REVIEW → ACTIVE (admin)."""
    ad = await get_ad(db, ad_id)
    now = now or utcnow()
    start, end = activation_window(now, ad.duration_days)

    result = await db.execute(
        update(Ad)
        .where(Ad.id == ad_id, Ad.status == AdStatus.PENDING_REVIEW)
        .values(status=AdStatus.ACTIVE, start_date=start, end_date=end, last_jumped_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        current = await get_ad(db, ad_id)
        raise StateConflict(
            f"Ad cannot be approved ({current.status.value})", status=current.status.value
        )

    notify(
        db,
        ad.user_id,
        title="Your ad is live",
        message=f"'{ad.title}' has been approved and is now listed.",
        link="/business/dashboard",
        kind="AD_APPROVED",
        ad_id=ad.id,
        now=now,
    )
    await db.commit()
    logger.info(f"Ad {ad_id} approved, active until {end.isoformat()}")
    return await get_ad(db, ad_id)


async def reject_ad(db: AsyncSession, ad_id: str, reason: str = "", now: Optional[datetime] = None) -> Ad:
    """PENDING_REVIEW | PENDING_DEPOSIT → REJECTED, cancelling pending payments."""
    ad = await get_ad(db, ad_id)
    reason = reason or "Rejected by administrator"

    try:
        result = await db.execute(
            update(Ad)
            .where(Ad.id == ad_id, Ad.status.in_([AdStatus.PENDING_REVIEW, AdStatus.PENDING_DEPOSIT]))
            .values(status=AdStatus.REJECTED)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise StateConflict(f"Ad cannot be rejected ({ad.status.value})", status=ad.status.value)

        cancelled = await db.execute(
            update(Payment)
            .where(Payment.ad_id == ad_id, Payment.status == PaymentStatus.PENDING)
            .values(status=PaymentStatus.CANCELLED, fail_reason=reason)
            .execution_options(synchronize_session=False)
        )
        notify(
            db,
            ad.user_id,
            title="Your ad was rejected",
            message=f"'{ad.title}' was rejected: {reason}",
            link=f"/business/ads/{ad.id}",
            kind="AD_REJECTED",
            ad_id=ad.id,
            now=now,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"Ad {ad_id} rejected, {cancelled.rowcount} pending payment(s) cancelled")
    return await get_ad(db, ad_id)


async def delete_ad(db: AsyncSession, ad_id: str) -> None:
    """Hard delete (admin); options, jump logs and notifications cascade, payments are detached."""
    ad = await get_ad(db, ad_id)
    await db.delete(ad)
    await db.commit()
    logger.info(f"Ad {ad_id} deleted")


async def set_verified(db: AsyncSession, ad_id: str, verified: bool) -> Ad:
    ad = await get_ad(db, ad_id)
    ad.is_verified = verified
    await db.commit()
    return await get_ad(db, ad_id)


# ==================== Owner operations ====================


async def edit_ad(db: AsyncSession, user: User, ad_id: str, changes: AdUpdate) -> Ad:
    """Edit an ACTIVE ad, consuming one edit from its quota."""
    ad = await get_owned_ad(db, user, ad_id)

    values = changes.model_dump(exclude_unset=True, exclude_none=True)
    if not values:
        raise ValidationFailed("Nothing to update")
    if "contact_phone" in values:
        values["contact_phone"] = _normalize_phone(values["contact_phone"])

    result = await db.execute(
        update(Ad)
        .where(Ad.id == ad_id, Ad.status == AdStatus.ACTIVE, Ad.edit_count < Ad.max_edits)
        .values(**values, edit_count=Ad.edit_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        current = await get_ad(db, ad_id)
        if current.status != AdStatus.ACTIVE:
            raise StateConflict("Only active ads can be edited", status=current.status.value)
        raise EditLimitReached(
            f"Edit limit reached (max {current.max_edits})",
            max_edits=current.max_edits,
            edit_count=current.edit_count,
        )

    await db.commit()
    return await get_ad(db, ad_id)


async def delete_account(db: AsyncSession, user: User) -> None:
    """Self-service account deletion; ads, payments and notifications cascade."""
    await db.delete(user)
    await db.commit()
    logger.info(f"User {user.id} deleted their account")


async def _bump_counter(db: AsyncSession, ad_id: str, column) -> None:
    result = await db.execute(
        update(Ad)
        .where(Ad.id == ad_id, Ad.status == AdStatus.ACTIVE)
        .values({column: column + 1})
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise NotFound("Ad not found")
    await db.commit()


async def record_view(db: AsyncSession, ad_id: str) -> None:
    await _bump_counter(db, ad_id, Ad.view_count)


async def record_click(db: AsyncSession, ad_id: str) -> None:
    await _bump_counter(db, ad_id, Ad.click_count)


async def verify_business(
    db: AsyncSession,
    user: User,
    ad_id: str,
    business_number: str,
    registry: Optional[BusinessRegistryClient] = None,
) -> RegistryResult:
    """
    Check the ad's business registration and set the verified badge.

    An unreachable registry is not an error: the number is stored and the
    result tells the caller it went to manual review.
    """
    ad = await get_owned_ad(db, user, ad_id)
    registry = registry or BusinessRegistryClient()

    result = await registry.lookup(business_number)
    if result.status == RegistryStatus.INVALID:
        raise ValidationFailed("Business registration number must be 10 digits")

    ad.business_number = normalize_business_number(business_number)
    # An unreachable registry leaves any existing badge alone
    if result.status != RegistryStatus.UNAVAILABLE:
        ad.is_verified = result.valid
    await db.commit()

    if result.status == RegistryStatus.UNAVAILABLE:
        logger.warning(f"Registry unavailable, ad {ad_id} queued for manual verification")
    else:
        logger.info(f"Ad {ad_id} registry status {result.status.value}")
    return result
