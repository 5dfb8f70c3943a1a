"""Admin endpoints for beta program management."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api import deps
from app.models.author_profile import AuthorProfile
from app.schemas.admin import AdminStats, AdminUserCreate, AdminUserCreated
from app.services import profiles
from app.services.auth import IdentityProviderClient, IdentityProviderError

logger = logging.getLogger(__name__)

router = APIRouter()


def get_identity_provider() -> IdentityProviderClient:
    return IdentityProviderClient()


@router.post("/users", response_model=AdminUserCreated)
def create_user(
    user_in: AdminUserCreate,
    db: Session = Depends(deps.get_db),
    current_admin: AuthorProfile = Depends(deps.get_current_admin),
    identity_provider: IdentityProviderClient = Depends(get_identity_provider),
):
    """Create a confirmed beta tester account (admin only)."""
    try:
        user = identity_provider.create_user(
            email=user_in.email,
            password=user_in.password,
            first_name=user_in.first_name,
            last_name=user_in.last_name,
        )
    except IdentityProviderError as e:
        if e.status_code is not None and e.status_code < 500:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)

    profile = profiles.upsert_beta_tester(
        db,
        auth_user_id=user["id"],
        email=user.get("email") or user_in.email,
        first_name=user_in.first_name,
        last_name=user_in.last_name,
        created_by=current_admin,
    )
    if profile is None:
        # Don't fail the request, the user is created
        logger.error("User %s created but profile could not be updated", user["id"])

    logger.info("Admin %s created beta tester %s", current_admin.id, user["id"])
    return AdminUserCreated(user_id=user["id"], email=user.get("email") or user_in.email)


@router.get("/stats", response_model=AdminStats)
def read_stats(
    db: Session = Depends(deps.get_db),
    current_admin: AuthorProfile = Depends(deps.get_current_admin),
):
    """Beta program dashboard numbers."""
    return profiles.get_admin_stats(db)
