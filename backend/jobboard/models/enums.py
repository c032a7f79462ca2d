from enum import Enum


class UserRole(str, Enum):
    BUSINESS = "BUSINESS"
    JOBSEEKER = "JOBSEEKER"
    ADMIN = "ADMIN"


class AdStatus(str, Enum):
    PENDING_DEPOSIT = "PENDING_DEPOSIT"
    PENDING_REVIEW = "PENDING_REVIEW"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "BANK_TRANSFER"
    CARD = "CARD"
    KAKAO_PAY = "KAKAO_PAY"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class JumpType(str, Enum):
    MANUAL = "MANUAL"
    AUTO = "AUTO"
