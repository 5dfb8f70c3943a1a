from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CoverDesign(BaseModel):
    id: int
    url: str
    prompt: str = ""
    selected: bool = False
    created_at: str | None = None


class PublishingElement(BaseModel):
    id: str
    label: str
    is_complete: bool
    is_active: bool
    is_locked: bool


class PublishingProgressResponse(BaseModel):
    """Stored progress row plus the navigation derived from it"""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    manuscript_id: UUID
    current_step: str | None = None
    completed_steps: list[str] = []
    assessment_completed: bool
    assessment_completed_at: datetime | None = None
    assessment_answers: dict[str, Any] = {}
    publishing_plan: str | None = None
    cover_designs: list[CoverDesign] = []
    selected_cover_id: int | None = None
    cover_selected_at: datetime | None = None
    step_data: dict[str, Any] = {}
    formatting_completed_at: datetime | None = None
    metadata_completed_at: datetime | None = None
    all_steps_completed_at: datetime | None = None
    version: int
    elements: list[PublishingElement] = []
    progress_percentage: int = 0


class AssessmentSubmit(BaseModel):
    answers: dict[str, Any]
    publishing_plan: str | None = None
    expected_version: int | None = None


class CoverDesignCreate(BaseModel):
    url: str = Field(..., min_length=1, max_length=2000)
    prompt: str = ""
    expected_version: int | None = None


class CoverSelection(BaseModel):
    cover_id: int
    expected_version: int | None = None


class StepCompletion(BaseModel):
    expected_version: int | None = None
