from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Literal, Optional
from jobboard.models.enums import PaymentMethod, PaymentStatus


class PaymentResponse(BaseModel):
    id: str
    order_id: str
    ad_id: Optional[str] = None
    amount: int
    method: PaymentMethod
    status: PaymentStatus
    item_snapshot: dict[str, Any]
    fail_reason: Optional[str] = None
    receipt_url: Optional[str] = None
    paid_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentConfirmRequest(BaseModel):
    payment_key: str = Field(min_length=1)
    order_id: str = Field(min_length=1)
    amount: int = Field(gt=0)


class ApprovalResponse(BaseModel):
    payment_id: str
    ad_id: Optional[str] = None
    kind: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class ReasonRequest(BaseModel):
    reason: str = ""


class CreditGrantRequest(BaseModel):
    credits: int
    mode: Literal["add", "set"] = "add"


class CreditResponse(BaseModel):
    user_id: str
    free_ad_credits: int
