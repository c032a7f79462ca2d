from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from jobboard.database import get_db
from jobboard.models import Payment, User
from jobboard.schemas import ApprovalResponse, PaymentConfirmRequest, PaymentResponse
from jobboard.auth import get_current_user
from jobboard.services.clients import BasePaymentGateway, TossPaymentsClient
from jobboard.services.reconciliation import confirm_gateway_payment

router = APIRouter()


def get_payment_gateway() -> BasePaymentGateway:
    return TossPaymentsClient()


@router.post("/confirm", response_model=ApprovalResponse)
async def confirm_payment(
    request: PaymentConfirmRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    gateway: BasePaymentGateway = Depends(get_payment_gateway),
):
    result = await confirm_gateway_payment(
        db, user, request.order_id, request.payment_key, request.amount, gateway=gateway
    )
    return ApprovalResponse(
        payment_id=result.payment_id,
        ad_id=result.ad_id,
        kind=result.kind,
        start_date=result.start_date,
        end_date=result.end_date,
    )


@router.get("/mine", response_model=list[PaymentResponse])
async def list_my_payments(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = await db.execute(
        select(Payment).where(Payment.user_id == user.id).order_by(Payment.created_at.desc())
    )
    return [PaymentResponse.model_validate(payment) for payment in result.scalars().all()]
