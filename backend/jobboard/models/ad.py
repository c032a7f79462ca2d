"""
Ad Model - Business job listing with tiered paid placement

Status Flow:
    PENDING_DEPOSIT ─┬─> ACTIVE ──> EXPIRED ──(renew)──> ACTIVE
    PENDING_REVIEW ──┤      └──(upgrade)──> ACTIVE
                     ├─> REJECTED
                     └─> CANCELLED (deposit deadline elapsed)

Ranking:
    Public listings sort by last_jumped_at desc; manual and automatic jumps
    refresh it. Every jump appends an immutable JumpLog row.
"""

from sqlalchemy import (
    Column, String, Integer, Boolean, Text, DateTime, JSON, Enum, ForeignKey, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from jobboard.database import Base
from jobboard.models.enums import AdStatus, JumpType
import uuid


class Ad(Base):
    """
    Job listing owned by a business user.

    Attributes:
        status: Lifecycle state (indexed)
        product_id: Tier from the pricing catalog
        duration_days: Length of the current paid window (0 = unlimited FREE)
        start_date/end_date: Active window, null until first activation
        total_amount: Amount paid for the current placement
        edit_count/max_edits: Edit quota for the current window
        auto_jump_per_day: Automatic jumps granted per day
        manual_jump_per_day/manual_jump_used_today: Manual jump quota
        last_jumped_at: Recency sort key
        last_manual_jump_at: Start of the manual jump cooldown
        is_verified: Business registration badge
    """

    __tablename__ = "ads"
    __table_args__ = (
        CheckConstraint("edit_count >= 0", name="ck_ads_edit_count"),
        CheckConstraint("manual_jump_used_today >= 0", name="ck_ads_manual_jump_used"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(100), nullable=False)
    business_name = Column(String(200), nullable=False)
    business_type = Column(String(50), nullable=False)
    contact_phone = Column(String(20), nullable=False)
    salary_text = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    regions = Column(JSON, nullable=False, default=list)
    business_number = Column(String(10), nullable=True)

    status = Column(Enum(AdStatus, native_enum=False, length=20), nullable=False, index=True)
    product_id = Column(String(20), nullable=False, index=True)
    duration_days = Column(Integer, nullable=False)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True, index=True)
    total_amount = Column(Integer, nullable=False, default=0)

    edit_count = Column(Integer, nullable=False, default=0)
    max_edits = Column(Integer, nullable=False, default=0)
    auto_jump_per_day = Column(Integer, nullable=False, default=0)
    manual_jump_per_day = Column(Integer, nullable=False, default=0)
    manual_jump_used_today = Column(Integer, nullable=False, default=0)
    last_jumped_at = Column(DateTime, nullable=False, server_default=func.now(), index=True)
    last_manual_jump_at = Column(DateTime, nullable=True)

    view_count = Column(Integer, nullable=False, default=0)
    click_count = Column(Integer, nullable=False, default=0)
    is_verified = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="ads")
    options = relationship("AdOption", back_populates="ad", cascade="all, delete-orphan", passive_deletes=True)
    jump_logs = relationship("JumpLog", cascade="all, delete-orphan", passive_deletes=True)


class AdOption(Base):
    """Priced add-on attached to an ad; replaced wholesale on upgrade/renew."""

    __tablename__ = "ad_options"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    ad_id = Column(String, ForeignKey("ads.id", ondelete="CASCADE"), nullable=False, index=True)
    option_id = Column(String(20), nullable=False)
    value = Column(String(50), nullable=True)
    duration_days = Column(Integer, nullable=False)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)

    ad = relationship("Ad", back_populates="options")


class JumpLog(Base):
    """Append-only audit record of a jump."""

    __tablename__ = "jump_logs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    ad_id = Column(String, ForeignKey("ads.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, nullable=False)
    type = Column(Enum(JumpType, native_enum=False, length=10), nullable=False)
    jumped_at = Column(DateTime, nullable=False, index=True)
