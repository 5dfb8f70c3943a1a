from uuid import UUID

from pydantic import BaseModel, Field


class CheckoutRequest(BaseModel):
    """Schema for creating a checkout session"""

    author_id: UUID
    manuscript_id: UUID | None = None
    package: str = Field("three-phase", pattern="^(three-phase|publishing|marketing|complete)$")


class CheckoutResponse(BaseModel):
    url: str
