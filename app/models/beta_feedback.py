"""
Beta tester feedback model.
"""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from app.db.base import Base
from app.db.types import GUID


class BetaFeedback(Base):
    """Free-text feedback submitted from any page of the app."""

    __tablename__ = "beta_feedback"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    author_id = Column(GUID(), ForeignKey("author_profiles.id"), nullable=False, index=True)
    manuscript_id = Column(GUID(), ForeignKey("manuscripts.id"))

    feedback_text = Column(Text, nullable=False)
    page_url = Column(String(1000))
    rating = Column(Integer)  # 1-5

    created_at = Column(DateTime(timezone=True), server_default=func.now())
