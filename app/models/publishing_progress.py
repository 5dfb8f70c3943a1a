"""
Publishing progress model: singleton per manuscript for the phase 4 workflow.
"""

import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base
from app.db.types import GUID


class PublishingProgress(Base):
    """Publishing workflow state.

    JSON columns are always reassigned with new objects (never mutated in
    place) so the ORM sees the change. ``version`` is the optimistic
    concurrency token; every UPDATE compares and bumps it.
    """

    __tablename__ = "publishing_progress"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    manuscript_id = Column(
        GUID(), ForeignKey("manuscripts.id"), unique=True, nullable=False, index=True
    )

    current_step = Column(String(50), default="assessment")
    completed_steps = Column(JSON, default=list)

    # Assessment
    assessment_completed = Column(Boolean, default=False, nullable=False)
    assessment_completed_at = Column(DateTime(timezone=True))
    assessment_answers = Column(JSON, default=dict)
    publishing_plan = Column(Text)

    # Covers: [{id, url, prompt, selected, created_at}]
    cover_designs = Column(JSON, default=list)
    selected_cover_id = Column(Integer)
    cover_selected_at = Column(DateTime(timezone=True))

    # Per-step flags (front_matter_complete, back_matter_complete,
    # platforms_configured, isbn_assigned)
    step_data = Column(JSON, default=dict)
    front_matter = Column(JSON, default=dict)
    back_matter = Column(JSON, default=dict)

    # Milestones
    formatting_completed_at = Column(DateTime(timezone=True))
    metadata_completed_at = Column(DateTime(timezone=True))
    all_steps_completed_at = Column(DateTime(timezone=True))

    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    manuscript = relationship("Manuscript", back_populates="publishing_progress")

    __mapper_args__ = {"version_id_col": version}
