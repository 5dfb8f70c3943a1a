from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class AdminUserCreate(BaseModel):
    """Schema for an admin-created beta tester account"""

    email: EmailStr
    password: str = Field(..., min_length=6)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)


class AdminUserCreated(BaseModel):
    success: bool = True
    user_id: UUID
    email: str


class AdminStats(BaseModel):
    total_beta_testers: int
    active_this_week: int
    phase_completions: int
    average_rating: float
