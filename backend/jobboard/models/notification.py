"""
Notification Model - In-app notification intents

kind identifies notifications that must not repeat (e.g. "AD_EXPIRY_D3");
the expiry notice job checks it before sending another one.
"""

from sqlalchemy import Column, String, Boolean, Text, DateTime, ForeignKey
from sqlalchemy.sql import func
from jobboard.database import Base
import uuid


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    ad_id = Column(String, ForeignKey("ads.id", ondelete="CASCADE"), nullable=True, index=True)
    kind = Column(String(40), nullable=False, default="GENERAL", index=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String(500), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now(), index=True)
