"""
Editing phase model: one row per (manuscript, phase_number).
"""

import enum
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base
from app.db.types import GUID


class PhaseStatus(str, enum.Enum):
    """Editing phase status."""

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETE = "complete"


PHASE_NUMBERS = (1, 2, 3, 4, 5)

EDITOR_CONFIG = {
    1: {"editor_name": "Alex", "phase_name": "developmental", "label": "Developmental Editing"},
    2: {"editor_name": "Sam", "phase_name": "line_editing", "label": "Line Editing"},
    3: {"editor_name": "Jordan", "phase_name": "copy_editing", "label": "Copy Editing"},
    4: {"editor_name": "Publishing Agent", "phase_name": "publishing", "label": "Publishing Preparation"},
    5: {"editor_name": "Marketing Agent", "phase_name": "marketing", "label": "Marketing Strategy"},
}


class EditingPhase(Base):
    """Per-manuscript editing phase status row.

    At most one phase per manuscript is active; phases activate in
    increasing order through app.services.phases, never directly.
    """

    __tablename__ = "editing_phases"
    __table_args__ = (
        UniqueConstraint("manuscript_id", "phase_number", name="uq_editing_phases_manuscript_phase"),
        Index(
            "uq_editing_phases_one_active",
            "manuscript_id",
            unique=True,
            postgresql_where=text("phase_status = 'active'"),
            sqlite_where=text("phase_status = 'active'"),
        ),
    )

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    manuscript_id = Column(GUID(), ForeignKey("manuscripts.id"), nullable=False, index=True)

    phase_number = Column(Integer, nullable=False)
    phase_name = Column(String(50), nullable=False)
    editor_name = Column(String(100), nullable=False)

    phase_status = Column(String(20), default=PhaseStatus.PENDING.value, nullable=False)

    started_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))

    # Progress tracking
    chapters_analyzed = Column(Integer, default=0)
    chapters_approved = Column(Integer, default=0)

    # Optimistic concurrency token
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    manuscript = relationship("Manuscript", back_populates="editing_phases")

    __mapper_args__ = {"version_id_col": version}
