from uuid import UUID

from pydantic import BaseModel


class TokenData(BaseModel):
    """Schema for token payload data"""

    user_id: UUID
    email: str | None = None
    role: str | None = None
