"""
Manuscript model for author-submitted works.
"""

import enum
import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base
from app.db.types import GUID


class ManuscriptStatus(str, enum.Enum):
    """Manuscript lifecycle status."""

    ACTIVE = "active"
    ARCHIVED = "archived"


class Manuscript(Base):
    """Manuscript model. Never hard-deleted in the normal flow."""

    __tablename__ = "manuscripts"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    author_id = Column(GUID(), ForeignKey("author_profiles.id"), nullable=False, index=True)

    # Basic metadata
    title = Column(String(500), nullable=False)
    genre = Column(String(100))
    current_word_count = Column(Integer, default=0)
    total_chapters = Column(Integer, default=0)
    has_prologue = Column(Boolean, default=False)
    has_epilogue = Column(Boolean, default=False)

    # Original upload
    full_text = Column(Text)

    # Status
    status = Column(String(20), default=ManuscriptStatus.ACTIVE.value, nullable=False)
    current_phase_number = Column(Integer, default=1, nullable=False)  # 1-5, denormalized

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    author = relationship("AuthorProfile", back_populates="manuscripts")
    chapters = relationship(
        "Chapter",
        back_populates="manuscript",
        cascade="all, delete-orphan",
        order_by="Chapter.chapter_number",
    )
    editing_phases = relationship(
        "EditingPhase",
        back_populates="manuscript",
        cascade="all, delete-orphan",
        order_by="EditingPhase.phase_number",
    )
    versions = relationship(
        "ManuscriptVersion", back_populates="manuscript", cascade="all, delete-orphan"
    )
    publishing_progress = relationship(
        "PublishingProgress",
        back_populates="manuscript",
        uselist=False,
        cascade="all, delete-orphan",
    )
    chat_messages = relationship(
        "EditorChatMessage", back_populates="manuscript", cascade="all, delete-orphan"
    )
