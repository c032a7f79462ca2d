"""
Payment Reconciliation - Applying an approved payment to its ad and owner

approve_payment() is the only operation that mutates a payment, an ad and a
user together. It runs as one transaction:

    1. PENDING → APPROVED (conditional update, the idempotency guard)
    2. apply the snapshot to the ad
         purchase: activate the ad for the snapshot duration
         upgrade/renew: replace options, product, duration, feature grants,
                        window, reset edit/manual-jump counters;
                        renew replaces total_amount, upgrade adds to it
    3. credit the owner's total_paid_ad_days unless the tier is FREE
    4. add one in-app notification for the owner

Any exception rolls the whole unit back. Business-rule rejections
(AlreadyProcessed, StateConflict) must not be retried; only transient
infrastructure failures are safe to retry.

Card/wallet checkouts pass through confirm_gateway_payment(), which asks the
gateway first, commits the gateway reference, then calls approve_payment().
A gateway outage leaves the payment PENDING so an admin can still approve
it by hand. A captured charge is never left PENDING: if the ad already went
ACTIVE through moderation the purchase is approved as-is, otherwise the
payment is marked FAILED with its gateway key kept for the refund.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from jobboard.auth import Capability, require
from jobboard.clock import utcnow
from jobboard.errors import (
    AlreadyProcessed,
    NotFound,
    PaymentDeclined,
    StateConflict,
    ValidationFailed,
)
from jobboard.middleware.metrics import record_payment_approval
from jobboard.models import Ad, AdOption, AdStatus, Payment, PaymentMethod, PaymentStatus, User
from jobboard.schemas.snapshot import PurchaseSnapshot, RenewSnapshot, parse_snapshot
from jobboard.services.clients.base import BasePaymentGateway, GatewayConfirmation
from jobboard.services.clients.toss import TossPaymentsClient
from jobboard.services.lifecycle import activation_window
from jobboard.services.notifications import notify
from jobboard.services.pricing import FREE_PRODUCT_ID

logger = logging.getLogger(__name__)

# Ad states a first purchase may activate
PURCHASE_SOURCE_STATES = (AdStatus.PENDING_DEPOSIT, AdStatus.PENDING_REVIEW)

MAX_CREDIT_GRANT = 100


@dataclass
class ApprovalResult:
    payment_id: str
    ad_id: Optional[str]
    kind: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


async def get_payment(db: AsyncSession, payment_id: str) -> Payment:
    result = await db.execute(
        select(Payment).where(Payment.id == payment_id).execution_options(populate_existing=True)
    )
    payment = result.scalar_one_or_none()
    if payment is None:
        raise NotFound("Payment not found")
    return payment


async def _apply_purchase(db: AsyncSession, ad_id: str, start: datetime, end: datetime) -> None:
    result = await db.execute(
        update(Ad)
        .where(Ad.id == ad_id, Ad.status.in_(PURCHASE_SOURCE_STATES))
        .values(status=AdStatus.ACTIVE, start_date=start, end_date=end, last_jumped_at=start)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise StateConflict("Ad is no longer awaiting payment")


async def _apply_change(db: AsyncSession, ad_id: str, payment: Payment, snapshot, start: datetime, end: datetime) -> None:
    required = AdStatus.EXPIRED if isinstance(snapshot, RenewSnapshot) else AdStatus.ACTIVE

    await db.execute(delete(AdOption).where(AdOption.ad_id == ad_id))
    for line in snapshot.options:
        db.add(
            AdOption(
                ad_id=ad_id,
                option_id=line.id,
                value=line.value,
                duration_days=snapshot.duration,
                start_date=start,
                end_date=end,
            )
        )

    if isinstance(snapshot, RenewSnapshot):
        total_amount = payment.amount
    else:
        total_amount = Ad.total_amount + payment.amount

    result = await db.execute(
        update(Ad)
        .where(Ad.id == ad_id, Ad.status == required)
        .values(
            status=AdStatus.ACTIVE,
            product_id=snapshot.product.id,
            duration_days=snapshot.duration,
            total_amount=total_amount,
            auto_jump_per_day=snapshot.features.auto_jump_per_day,
            manual_jump_per_day=snapshot.features.manual_jump_per_day,
            max_edits=snapshot.features.max_edits,
            start_date=start,
            end_date=end,
            last_jumped_at=start,
            manual_jump_used_today=0,
            edit_count=0,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise StateConflict(f"Ad must be {required.value} to apply this {snapshot.type}")


async def _credit_paid_days(db: AsyncSession, user_id: str, days: int) -> None:
    await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(total_paid_ad_days=User.total_paid_ad_days + days)
        .execution_options(synchronize_session=False)
    )


async def approve_payment(
    db: AsyncSession,
    payment_id: str,
    now: Optional[datetime] = None,
) -> ApprovalResult:
    """
    Approve a PENDING payment and apply it atomically.

    Args:
        db: Session; committed on success, rolled back on any failure
        payment_id: Payment to approve
        now: Approval time (defaults to current UTC time)

    Returns:
        ApprovalResult describing the applied window

    Raises:
        NotFound: Unknown payment
        AlreadyProcessed: Payment is not PENDING (nothing written)
        StateConflict: Ad not in the state the snapshot requires
    """
    payment = await get_payment(db, payment_id)
    if payment.status != PaymentStatus.PENDING:
        logger.warning(f"Payment {payment_id} already processed ({payment.status.value})")
        raise AlreadyProcessed(
            f"Payment already processed ({payment.status.value})", status=payment.status.value
        )

    snapshot = parse_snapshot(payment.item_snapshot)
    now = now or utcnow()
    start, end = activation_window(now, snapshot.duration)
    ad_id = payment.ad_id

    try:
        # Step 1: idempotency guard and approval
        flipped = await db.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status == PaymentStatus.PENDING)
            .values(status=PaymentStatus.APPROVED, paid_at=now)
            .execution_options(synchronize_session=False)
        )
        if flipped.rowcount == 0:
            raise AlreadyProcessed("Payment already processed")

        ad = None
        if ad_id is not None:
            ad = (await db.execute(select(Ad).where(Ad.id == ad_id))).scalar_one_or_none()

        if ad is not None:
            # Step 2: apply snapshot to the ad
            if isinstance(snapshot, PurchaseSnapshot):
                await _apply_purchase(db, ad_id, start, end)
            else:
                await _apply_change(db, ad_id, payment, snapshot, start, end)

            # Step 3: loyalty days for paid tiers
            if snapshot.product.id != FREE_PRODUCT_ID:
                await _credit_paid_days(db, ad.user_id, snapshot.duration)

            # Step 4: owner notification
            notify(
                db,
                ad.user_id,
                title="Payment confirmed",
                message=f"'{ad.title}' is active for {snapshot.duration} days.",
                link="/business/dashboard",
                kind="PAYMENT_APPROVED",
                ad_id=ad_id,
                now=now,
            )

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    record_payment_approval(snapshot.type)
    logger.info(f"Payment {payment_id} approved ({snapshot.type}) for ad {ad_id}")
    return ApprovalResult(
        payment_id=payment_id,
        ad_id=ad_id,
        kind=snapshot.type,
        start_date=start if ad_id else None,
        end_date=end if ad_id else None,
    )


def _method_from_confirmation(confirmation: GatewayConfirmation) -> PaymentMethod:
    provider = (confirmation.provider or "").lower()
    if "kakao" in provider or "카카오" in provider:
        return PaymentMethod.KAKAO_PAY
    return PaymentMethod.CARD


async def confirm_gateway_payment(
    db: AsyncSession,
    user: User,
    order_id: str,
    payment_key: str,
    amount: int,
    gateway: Optional[BasePaymentGateway] = None,
    now: Optional[datetime] = None,
) -> ApprovalResult:
    """
    Confirm a card/wallet payment with the gateway, then approve it.

    Raises:
        NotFound, Forbidden, AlreadyProcessed, ValidationFailed (amount)
        PaymentDeclined: gateway refused, payment marked FAILED
        ExternalServiceError: gateway unreachable, payment left PENDING
        StateConflict: charge captured but the ad moved on, payment FAILED for refund
    """
    result = await db.execute(select(Payment).where(Payment.order_id == order_id))
    payment = result.scalar_one_or_none()
    if payment is None:
        raise NotFound("Payment not found")
    require(user, Capability.CONFIRM_OWN_PAYMENT, payment)

    if payment.status != PaymentStatus.PENDING:
        raise AlreadyProcessed("Payment already processed", status=payment.status.value)
    if payment.amount != amount:
        raise ValidationFailed("Payment amount does not match the order")

    gateway = gateway or TossPaymentsClient()
    try:
        confirmation = await gateway.confirm(payment_key, order_id, amount)
    except PaymentDeclined as e:
        await db.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status == PaymentStatus.PENDING)
            .values(status=PaymentStatus.FAILED, fail_reason=e.message, gateway_payment_key=payment_key)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        logger.info(f"Gateway declined order {order_id}: {e.message}")
        raise

    payment_id = payment.id
    method = _method_from_confirmation(confirmation)

    # The charge is captured: persist the gateway reference on its own
    await db.execute(
        update(Payment)
        .where(Payment.id == payment_id)
        .values(
            method=method,
            gateway_payment_key=confirmation.payment_key,
            receipt_url=confirmation.receipt_url,
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    try:
        return await approve_payment(db, payment_id, now=now)
    except StateConflict:
        return await _settle_captured_payment(db, payment_id, now or utcnow())


async def _settle_captured_payment(db: AsyncSession, payment_id: str, now: datetime) -> ApprovalResult:
    """
    Resolve a captured charge whose ad is no longer in the state its snapshot needs.

    A purchase whose ad an administrator already activated is approved
    without re-activating the ad. Anything else is marked FAILED; the stored
    gateway key is what the refund needs.
    """
    payment = await get_payment(db, payment_id)
    snapshot = parse_snapshot(payment.item_snapshot)
    ad = (
        await db.execute(select(Ad).where(Ad.id == payment.ad_id).execution_options(populate_existing=True))
    ).scalar_one_or_none()
    ad_status = ad.status.value if ad is not None else "DELETED"

    if isinstance(snapshot, PurchaseSnapshot) and ad is not None and ad.status == AdStatus.ACTIVE:
        ad_id, owner_id = ad.id, ad.user_id
        start, end = ad.start_date, ad.end_date
        try:
            flipped = await db.execute(
                update(Payment)
                .where(Payment.id == payment_id, Payment.status == PaymentStatus.PENDING)
                .values(status=PaymentStatus.APPROVED, paid_at=now)
                .execution_options(synchronize_session=False)
            )
            if flipped.rowcount == 0:
                raise AlreadyProcessed("Payment already processed")
            if snapshot.product.id != FREE_PRODUCT_ID:
                await _credit_paid_days(db, owner_id, snapshot.duration)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        record_payment_approval(snapshot.type)
        logger.info(f"Payment {payment_id} approved for ad {ad_id}, already active")
        return ApprovalResult(payment_id=payment_id, ad_id=ad_id, kind=snapshot.type, start_date=start, end_date=end)

    await db.execute(
        update(Payment)
        .where(Payment.id == payment_id, Payment.status == PaymentStatus.PENDING)
        .values(
            status=PaymentStatus.FAILED,
            fail_reason=f"Ad was {ad_status} when the charge was captured; refund required",
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.warning(f"Captured payment {payment_id} could not be applied (ad {ad_status}), refund required")
    raise StateConflict(
        f"Ad can no longer take this {snapshot.type} ({ad_status}); the charge will be refunded",
        status=ad_status,
        refundRequired=True,
    )


async def cancel_payment(db: AsyncSession, payment_id: str, reason: str = "") -> Payment:
    """PENDING → CANCELLED (admin)."""
    payment = await get_payment(db, payment_id)
    result = await db.execute(
        update(Payment)
        .where(Payment.id == payment_id, Payment.status == PaymentStatus.PENDING)
        .values(status=PaymentStatus.CANCELLED, fail_reason=reason or "Cancelled by administrator")
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise AlreadyProcessed(
            f"Payment already processed ({payment.status.value})", status=payment.status.value
        )
    await db.commit()
    logger.info(f"Payment {payment_id} cancelled")
    return await get_payment(db, payment_id)


async def refund_payment(
    db: AsyncSession,
    payment_id: str,
    reason: str = "",
    now: Optional[datetime] = None,
) -> Payment:
    """APPROVED → REFUNDED (admin). The ad keeps its current state."""
    payment = await get_payment(db, payment_id)
    result = await db.execute(
        update(Payment)
        .where(Payment.id == payment_id, Payment.status == PaymentStatus.APPROVED)
        .values(status=PaymentStatus.REFUNDED, refunded_at=now or utcnow(), fail_reason=reason or None)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise StateConflict(
            f"Only approved payments can be refunded ({payment.status.value})", status=payment.status.value
        )
    await db.commit()
    logger.info(f"Payment {payment_id} refunded")
    return await get_payment(db, payment_id)


async def grant_free_credits(db: AsyncSession, user_id: str, credits: int, mode: str = "add") -> int:
    """Add to (1..100) or set (0..100) a user's free ad credits; returns the new balance."""
    if mode == "set":
        if not 0 <= credits <= MAX_CREDIT_GRANT:
            raise ValidationFailed(f"Credits must be between 0 and {MAX_CREDIT_GRANT}")
        value = credits
    else:
        if not 1 <= credits <= MAX_CREDIT_GRANT:
            raise ValidationFailed(f"Credits must be between 1 and {MAX_CREDIT_GRANT}")
        value = User.free_ad_credits + credits

    result = await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(free_ad_credits=value)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise NotFound("User not found")
    await db.commit()

    balance = await db.execute(select(User.free_ad_credits).where(User.id == user_id))
    return balance.scalar_one()
