from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PhaseResponse(BaseModel):
    """Schema for one editing phase row"""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    manuscript_id: UUID
    phase_number: int
    phase_name: str
    editor_name: str
    phase_status: str
    started_at: datetime | None = None
    completed_at: datetime | None = None
    chapters_analyzed: int | None = 0
    chapters_approved: int | None = 0
    version: int


class PhaseCompletion(BaseModel):
    editor_name: str | None = Field(None, max_length=100)


class PhaseTransitionResult(BaseModel):
    success: bool
    completed_phase: int
    # None while the next phase waits for a purchase
    active_phase: int | None = None
