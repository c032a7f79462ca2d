"""
Payment Model - Priced order snapshot plus mutable status

item_snapshot is written once at checkout and never updated; approval reads
product, duration, options and feature grants from it (see
jobboard.schemas.snapshot for the typed variants).

Status Flow:
    PENDING → APPROVED → REFUNDED
            → FAILED | CANCELLED
"""

from sqlalchemy import Column, String, Integer, Text, DateTime, JSON, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from jobboard.database import Base
from jobboard.models.enums import PaymentMethod, PaymentStatus
import uuid


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String(64), nullable=False, unique=True, index=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    ad_id = Column(String, ForeignKey("ads.id", ondelete="SET NULL"), nullable=True, index=True)
    amount = Column(Integer, nullable=False)
    method = Column(Enum(PaymentMethod, native_enum=False, length=20), nullable=False)
    status = Column(
        Enum(PaymentStatus, native_enum=False, length=20),
        nullable=False,
        default=PaymentStatus.PENDING,
        index=True,
    )
    item_snapshot = Column(JSON, nullable=False)
    fail_reason = Column(Text, nullable=True)
    gateway_payment_key = Column(String(200), nullable=True)
    receipt_url = Column(String(2000), nullable=True)
    paid_at = Column(DateTime, nullable=True)
    refunded_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="payments")
    ad = relationship("Ad")
