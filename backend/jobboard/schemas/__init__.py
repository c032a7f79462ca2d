from jobboard.schemas.ad import (
    AdCreate,
    AdUpdate,
    AdResponse,
    AdListResponse,
    UpgradeRequest,
    RenewRequest,
    CheckoutResponse,
    JumpResponse,
    VerifyBusinessRequest,
    VerifyBusinessResponse,
)
from jobboard.schemas.payment import (
    PaymentResponse,
    PaymentConfirmRequest,
    ApprovalResponse,
    ReasonRequest,
    CreditGrantRequest,
    CreditResponse,
)
from jobboard.schemas.auth import RegisterRequest, LoginRequest, LoginResponse, UserResponse
from jobboard.schemas.snapshot import (
    PurchaseSnapshot,
    UpgradeSnapshot,
    RenewSnapshot,
    parse_snapshot,
)

__all__ = [
    "AdCreate",
    "AdUpdate",
    "AdResponse",
    "AdListResponse",
    "UpgradeRequest",
    "RenewRequest",
    "CheckoutResponse",
    "JumpResponse",
    "VerifyBusinessRequest",
    "VerifyBusinessResponse",
    "PaymentResponse",
    "PaymentConfirmRequest",
    "ApprovalResponse",
    "ReasonRequest",
    "CreditGrantRequest",
    "CreditResponse",
    "RegisterRequest",
    "LoginRequest",
    "LoginResponse",
    "UserResponse",
    "PurchaseSnapshot",
    "UpgradeSnapshot",
    "RenewSnapshot",
    "parse_snapshot",
]
