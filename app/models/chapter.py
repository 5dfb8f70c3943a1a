"""
Chapter model for manuscript content.
"""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base
from app.db.types import GUID

# Phases that are completed by per-chapter approval
APPROVAL_PHASES = (1, 2, 3)


def approval_column(phase_number: int) -> str:
    """Name of the approval timestamp column for an editing phase."""
    if phase_number not in APPROVAL_PHASES:
        raise ValueError(f"Phase {phase_number} has no chapter approvals")
    return f"phase_{phase_number}_approved_at"


class Chapter(Base):
    """Ordered chapter of a manuscript. chapter_number 0 is the prologue."""

    __tablename__ = "chapters"
    __table_args__ = (
        UniqueConstraint("manuscript_id", "chapter_number", name="uq_chapters_manuscript_number"),
    )

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    manuscript_id = Column(GUID(), ForeignKey("manuscripts.id"), nullable=False, index=True)
    chapter_number = Column(Integer, nullable=False)
    title = Column(String(500), default="")

    # Content
    content = Column(Text, default="")
    word_count = Column(Integer, default=0)
    status = Column(String(50), default="draft")

    # Phase approvals
    phase_1_approved_at = Column(DateTime(timezone=True))
    phase_2_approved_at = Column(DateTime(timezone=True))
    phase_3_approved_at = Column(DateTime(timezone=True))

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    manuscript = relationship("Manuscript", back_populates="chapters")
