"""
Purchase records written by the payment webhook.
"""

import enum
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base
from app.db.types import GUID


class PackageType(str, enum.Enum):
    """Purchasable packages."""

    THREE_PHASE = "three-phase"
    PUBLISHING = "publishing"
    MARKETING = "marketing"
    COMPLETE = "complete"


class UserPurchase(Base):
    """A completed checkout for one package."""

    __tablename__ = "user_purchases"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    author_id = Column(GUID(), ForeignKey("author_profiles.id"), nullable=False, index=True)
    manuscript_id = Column(GUID(), ForeignKey("manuscripts.id"))

    package = Column(String(50), nullable=False)
    amount_cents = Column(Integer, default=0)
    currency = Column(String(10), default="usd")
    status = Column(String(20), default="completed", nullable=False)

    # Stripe references; the session id makes webhook redelivery idempotent
    stripe_session_id = Column(String(255), unique=True, nullable=False)
    stripe_payment_intent_id = Column(String(255))
    stripe_customer_id = Column(String(255))

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    author = relationship("AuthorProfile", back_populates="purchases")
