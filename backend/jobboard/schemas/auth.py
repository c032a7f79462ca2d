from pydantic import BaseModel, Field
from typing import Literal, Optional
from jobboard.models.enums import UserRole


class RegisterRequest(BaseModel):
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=320)
    password: str = Field(min_length=8)
    name: str = Field(min_length=1, max_length=100)
    role: Literal["BUSINESS", "JOBSEEKER"] = "BUSINESS"


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    success: bool
    message: str
    token: Optional[str] = None


class UserResponse(BaseModel):
    id: str
    email: str
    name: str
    role: UserRole
    total_paid_ad_days: int
    free_ad_credits: int
    grade: str = "none"

    class Config:
        from_attributes = True
