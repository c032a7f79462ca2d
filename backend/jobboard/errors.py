"""
Domain Errors - Rejections raised by the ad lifecycle services

Every rejected operation carries a machine-checkable ``code`` and a
human-readable ``message``. The API layer renders them as:

    {"error": "<message>", "code": "<CODE>", ...extra}

Taxonomy:
    ValidationFailed     bad input shape/range, raised before any mutation
    StateConflict        wrong status for the requested transition
    QuotaExhausted       daily manual-jump quota used up
    EditLimitReached     edit quota used up
    CooldownActive       manual-jump cooldown still running
    AlreadyProcessed     payment already left PENDING (idempotency)
    SlotsFull            capped product has no free slot
    InsufficientCredits  FREE listing without a free ad credit
    EmailTaken           registration with an existing email
    RateLimited          too many requests from one client
    PaymentDeclined      gateway refused the payment
    ExternalServiceError third-party call failed or timed out (transient)
"""

from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base class for rejections that leave persistent state untouched."""

    status_code: int = 400
    code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra: Dict[str, Any] = extra

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code, **self.extra}


class ValidationFailed(DomainError):
    status_code = 400
    code = "VALIDATION_ERROR"


class Unauthenticated(DomainError):
    status_code = 401
    code = "UNAUTHENTICATED"


class Forbidden(DomainError):
    status_code = 403
    code = "FORBIDDEN"


class NotFound(DomainError):
    status_code = 404
    code = "NOT_FOUND"


class StateConflict(DomainError):
    status_code = 409
    code = "INVALID_STATE"


class QuotaExhausted(DomainError):
    status_code = 409
    code = "QUOTA_EXHAUSTED"


class EditLimitReached(DomainError):
    status_code = 409
    code = "EDIT_LIMIT_REACHED"


class AlreadyProcessed(DomainError):
    status_code = 409
    code = "ALREADY_PROCESSED"


class SlotsFull(DomainError):
    status_code = 409
    code = "SLOTS_FULL"


class InsufficientCredits(DomainError):
    status_code = 409
    code = "INSUFFICIENT_CREDITS"


class EmailTaken(DomainError):
    status_code = 409
    code = "EMAIL_TAKEN"


class CooldownActive(DomainError):
    status_code = 429
    code = "COOLDOWN_ACTIVE"


class RateLimited(DomainError):
    status_code = 429
    code = "RATE_LIMITED"


class PaymentDeclined(DomainError):
    status_code = 402
    code = "PAYMENT_DECLINED"


class ExternalServiceError(DomainError):
    status_code = 503
    code = "UPSTREAM_UNAVAILABLE"

    def __init__(self, message: str, service: Optional[str] = None, **extra: Any):
        if service:
            extra["service"] = service
        super().__init__(message, **extra)
