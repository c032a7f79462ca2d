from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from jobboard.models.enums import AdStatus, PaymentMethod


class AdBase(BaseModel):
    business_name: str = Field(min_length=1, max_length=200)
    business_type: str = Field(min_length=1, max_length=50)
    contact_phone: str = Field(pattern=r"^01[016789]-?\d{3,4}-?\d{4}$")
    title: str = Field(min_length=1, max_length=30)
    salary_text: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=10)
    regions: list[str] = []


class AdCreate(AdBase):
    product_id: str
    duration_days: int
    options: list[str] = []
    option_values: dict[str, str] = {}
    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER


class AdUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=30)
    salary_text: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=10)
    contact_phone: Optional[str] = Field(None, pattern=r"^01[016789]-?\d{3,4}-?\d{4}$")
    business_type: Optional[str] = Field(None, min_length=1, max_length=50)


class UpgradeRequest(BaseModel):
    product_id: str
    duration_days: int
    options: list[str] = []
    option_values: dict[str, str] = {}
    payment_method: PaymentMethod


class RenewRequest(BaseModel):
    duration_days: int
    options: list[str] = []
    option_values: dict[str, str] = {}
    payment_method: PaymentMethod


class AdOptionResponse(BaseModel):
    option_id: str
    value: Optional[str] = None
    duration_days: int
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    class Config:
        from_attributes = True


class AdResponse(AdBase):
    id: str
    user_id: str
    status: AdStatus
    product_id: str
    duration_days: int
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    total_amount: int
    edit_count: int
    max_edits: int
    auto_jump_per_day: int
    manual_jump_per_day: int
    manual_jump_used_today: int
    last_jumped_at: datetime
    view_count: int
    click_count: int
    is_verified: bool
    created_at: datetime
    options: list[AdOptionResponse] = []

    class Config:
        from_attributes = True


class AdListResponse(BaseModel):
    ads: list[AdResponse]
    total: int
    page: int
    per_page: int


class CheckoutResponse(BaseModel):
    ad_id: str
    status: AdStatus
    order_id: Optional[str] = None
    amount: int
    order_name: str


class JumpResponse(BaseModel):
    remaining: int
    next_available: datetime


class VerifyBusinessRequest(BaseModel):
    business_number: str = Field(pattern=r"^\d{3}-?\d{2}-?\d{5}$")


class VerifyBusinessResponse(BaseModel):
    registry_status: str
    verified: bool
    manual_review: bool
