from jobboard.models.enums import AdStatus, JumpType, PaymentMethod, PaymentStatus, UserRole
from jobboard.models.user import User
from jobboard.models.ad import Ad, AdOption, JumpLog
from jobboard.models.payment import Payment
from jobboard.models.notification import Notification

__all__ = [
    "AdStatus",
    "JumpType",
    "PaymentMethod",
    "PaymentStatus",
    "UserRole",
    "User",
    "Ad",
    "AdOption",
    "JumpLog",
    "Payment",
    "Notification",
]
