"""
Author profile model: one row per authenticated identity.
"""

import uuid

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base
from app.db.types import GUID

ADMIN_ROLES = ("admin", "super_admin")


class AuthorProfile(Base):
    """Author profile linked to an identity-provider user."""

    __tablename__ = "author_profiles"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    auth_user_id = Column(GUID(), unique=True, index=True, nullable=False)

    # Contact info
    email = Column(String(255), index=True, nullable=False)
    first_name = Column(String(100))
    last_name = Column(String(100))
    phone = Column(String(50))
    genre = Column(String(100))
    writing_experience = Column(String(100))

    # Role flags
    role = Column(String(50), default="author", nullable=False)  # author, admin, super_admin
    is_beta_tester = Column(Boolean, default=False, nullable=False)
    created_by_admin_id = Column(GUID())

    onboarding_complete = Column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    last_login_at = Column(DateTime(timezone=True))

    # Relationships
    manuscripts = relationship(
        "Manuscript", back_populates="author", cascade="all, delete-orphan"
    )
    purchases = relationship(
        "UserPurchase", back_populates="author", cascade="all, delete-orphan"
    )

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES
