"""
User Model - Account owning ads and payments

Only the fields the ad lifecycle relies on are modelled here.

Aggregates:
    total_paid_ad_days: incremented on every non-FREE payment approval,
        feeds the loyalty grade badge
    free_ad_credits: balance consumed by FREE ad creation, only ever changed
        with atomic UPDATE ... SET free_ad_credits = free_ad_credits +/- n
"""

from sqlalchemy import Column, String, Integer, DateTime, Enum, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from jobboard.database import Base
from jobboard.models.enums import UserRole
import uuid


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("free_ad_credits >= 0", name="ck_users_free_ad_credits"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(320), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(100), nullable=False)
    role = Column(Enum(UserRole, native_enum=False, length=20), nullable=False, default=UserRole.BUSINESS)
    total_paid_ad_days = Column(Integer, nullable=False, default=0)
    free_ad_credits = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now())

    ads = relationship("Ad", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    payments = relationship("Payment", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    notifications = relationship("Notification", cascade="all, delete-orphan", passive_deletes=True)
