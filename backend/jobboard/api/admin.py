from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from jobboard.database import get_db
from jobboard.models import Ad, AdStatus, Payment, PaymentStatus, User
from jobboard.schemas import (
    AdResponse,
    ApprovalResponse,
    CreditGrantRequest,
    CreditResponse,
    PaymentResponse,
    ReasonRequest,
)
from jobboard.auth import Capability, requires
from jobboard.services import lifecycle, reconciliation

router = APIRouter()


# ==================== Ads ====================


@router.post("/ads/{ad_id}/approve", response_model=AdResponse)
async def approve_ad(
    ad_id: str,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(requires(Capability.MODERATE_ADS)),
):
    return AdResponse.model_validate(await lifecycle.approve_ad(db, ad_id))


@router.post("/ads/{ad_id}/reject", response_model=AdResponse)
async def reject_ad(
    ad_id: str,
    request: ReasonRequest,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(requires(Capability.MODERATE_ADS)),
):
    return AdResponse.model_validate(await lifecycle.reject_ad(db, ad_id, request.reason))


@router.delete("/ads/{ad_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_ad(
    ad_id: str,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(requires(Capability.MODERATE_ADS)),
):
    await lifecycle.delete_ad(db, ad_id)


@router.post("/ads/{ad_id}/verify", response_model=AdResponse)
async def verify_ad(
    ad_id: str,
    verified: bool = Query(True),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(requires(Capability.MODERATE_ADS)),
):
    return AdResponse.model_validate(await lifecycle.set_verified(db, ad_id, verified))


# ==================== Payments ====================


@router.get("/payments", response_model=list[PaymentResponse])
async def list_payments(
    payment_status: PaymentStatus = Query(PaymentStatus.PENDING, alias="status"),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(requires(Capability.MANAGE_PAYMENTS)),
):
    result = await db.execute(
        select(Payment).where(Payment.status == payment_status).order_by(Payment.created_at.asc())
    )
    return [PaymentResponse.model_validate(payment) for payment in result.scalars().all()]


@router.post("/payments/{payment_id}/approve", response_model=ApprovalResponse)
async def approve_payment(
    payment_id: str,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(requires(Capability.MANAGE_PAYMENTS)),
):
    result = await reconciliation.approve_payment(db, payment_id)
    return ApprovalResponse(
        payment_id=result.payment_id,
        ad_id=result.ad_id,
        kind=result.kind,
        start_date=result.start_date,
        end_date=result.end_date,
    )


@router.post("/payments/{payment_id}/cancel", response_model=PaymentResponse)
async def cancel_payment(
    payment_id: str,
    request: ReasonRequest,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(requires(Capability.MANAGE_PAYMENTS)),
):
    return PaymentResponse.model_validate(
        await reconciliation.cancel_payment(db, payment_id, request.reason)
    )


@router.post("/payments/{payment_id}/refund", response_model=PaymentResponse)
async def refund_payment(
    payment_id: str,
    request: ReasonRequest,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(requires(Capability.MANAGE_PAYMENTS)),
):
    return PaymentResponse.model_validate(
        await reconciliation.refund_payment(db, payment_id, request.reason)
    )


# ==================== Users ====================


@router.post("/users/{user_id}/credits", response_model=CreditResponse)
async def grant_credits(
    user_id: str,
    request: CreditGrantRequest,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(requires(Capability.MANAGE_USERS)),
):
    balance = await reconciliation.grant_free_credits(db, user_id, request.credits, request.mode)
    return CreditResponse(user_id=user_id, free_ad_credits=balance)


# ==================== Stats ====================


@router.get("/stats")
async def get_stats(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(requires(Capability.MODERATE_ADS)),
):
    # Ads by status - single GROUP BY query
    status_result = await db.execute(select(Ad.status, func.count(Ad.id)).group_by(Ad.status))
    ads_by_status = {row[0].value: row[1] for row in status_result.all()}
    for ad_status in AdStatus:
        ads_by_status.setdefault(ad_status.value, 0)

    # Active ads by product
    product_result = await db.execute(
        select(Ad.product_id, func.count(Ad.id))
        .where(Ad.status == AdStatus.ACTIVE)
        .group_by(Ad.product_id)
    )
    active_by_product = {row[0]: row[1] for row in product_result.all()}

    pending_result = await db.execute(
        select(func.count(Payment.id)).where(Payment.status == PaymentStatus.PENDING)
    )
    pending_payments = pending_result.scalar() or 0

    revenue_result = await db.execute(
        select(func.sum(Payment.amount)).where(Payment.status == PaymentStatus.APPROVED)
    )
    revenue = revenue_result.scalar() or 0

    users_result = await db.execute(select(func.count(User.id)))
    total_users = users_result.scalar() or 0

    return {
        "total_users": total_users,
        "ads_by_status": ads_by_status,
        "active_by_product": active_by_product,
        "pending_payments": pending_payments,
        "approved_revenue": revenue,
    }
