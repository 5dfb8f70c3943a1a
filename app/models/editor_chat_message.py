"""
Editor chat history model.
"""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base
from app.db.types import GUID


class EditorChatMessage(Base):
    """One message between the author and the phase editor."""

    __tablename__ = "editor_chat_history"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    manuscript_id = Column(GUID(), ForeignKey("manuscripts.id"), nullable=False, index=True)

    phase_number = Column(Integer, nullable=False)
    chapter_number = Column(Integer)

    sender = Column(String(20), nullable=False)  # author, editor
    message = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    manuscript = relationship("Manuscript", back_populates="chat_messages")
