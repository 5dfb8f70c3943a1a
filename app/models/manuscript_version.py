"""
Manuscript version model: immutable snapshots of collated content.
"""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, event
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base
from app.db.types import GUID

APPROVED_SNAPSHOT = "approved_snapshot"


class ManuscriptVersion(Base):
    """Write-once manuscript snapshot."""

    __tablename__ = "manuscript_versions"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    manuscript_id = Column(GUID(), ForeignKey("manuscripts.id"), nullable=False, index=True)

    phase_number = Column(Integer, nullable=False)
    version_type = Column(String(50), nullable=False, default=APPROVED_SNAPSHOT)  # also working_draft, print_format

    # Content
    content = Column(Text, nullable=False)
    word_count = Column(Integer, default=0)
    file_url = Column(String(1000))

    created_by_editor = Column(String(100))
    notes = Column(Text)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    manuscript = relationship("Manuscript", back_populates="versions")


@event.listens_for(ManuscriptVersion, "before_update")
def _reject_version_update(mapper, connection, target):
    raise ValueError("manuscript_versions rows are immutable")
