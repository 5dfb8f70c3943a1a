from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ProfileResponse(BaseModel):
    """Schema for the caller's author profile"""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    auth_user_id: UUID
    email: str
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    genre: str | None = None
    writing_experience: str | None = None
    role: str
    is_admin: bool
    is_beta_tester: bool
    onboarding_complete: bool
    created_at: datetime | None = None
    last_login_at: datetime | None = None


class ProfileUpdate(BaseModel):
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    phone: str | None = Field(None, max_length=50)
    genre: str | None = Field(None, max_length=100)
    writing_experience: str | None = Field(None, max_length=100)
    onboarding_complete: bool | None = None


class AccessResponse(BaseModel):
    is_admin: bool
    is_beta_tester: bool
    purchased_package: str | None = None
    package_display_name: str
    purchased_packages: list[str]
    has_full_access: bool
    available_phases: list[int]


class FeedbackCreate(BaseModel):
    feedback_text: str = Field(..., min_length=1)
    rating: int | None = Field(None, ge=1, le=5)
    page_url: str | None = Field(None, max_length=1000)
    manuscript_id: UUID | None = None


class FeedbackResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    feedback_text: str
    rating: int | None = None
    page_url: str | None = None
    manuscript_id: UUID | None = None
    created_at: datetime | None = None
