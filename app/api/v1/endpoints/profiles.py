"""Author profile endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api import deps
from app.models.author_profile import AuthorProfile
from app.schemas.profile import AccessResponse, ProfileResponse, ProfileUpdate
from app.services import access, profiles

router = APIRouter()


@router.get("/me", response_model=ProfileResponse)
def read_profile(current_profile: AuthorProfile = Depends(deps.get_current_profile)):
    """Get the caller's profile."""
    return current_profile


@router.patch("/me", response_model=ProfileResponse)
def update_profile(
    profile_update: ProfileUpdate,
    db: Session = Depends(deps.get_db),
    current_profile: AuthorProfile = Depends(deps.get_current_profile),
):
    """Update contact fields or the onboarding flag."""
    changes = profile_update.model_dump(exclude_unset=True)
    if not profiles.update_profile(db, current_profile, changes):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update profile",
        )
    return current_profile


@router.post("/me/login", status_code=status.HTTP_204_NO_CONTENT)
def track_login(
    db: Session = Depends(deps.get_db),
    current_profile: AuthorProfile = Depends(deps.get_current_profile),
):
    """Record a sign-in (last_login_at)."""
    profiles.track_login(db, current_profile)


@router.get("/me/access", response_model=AccessResponse)
def read_access(
    db: Session = Depends(deps.get_db),
    current_profile: AuthorProfile = Depends(deps.get_current_profile),
):
    """Phases the caller may open and the package behind them."""
    user_access = access.get_user_access(db, current_profile.auth_user_id)
    return AccessResponse(
        is_admin=user_access.is_admin,
        is_beta_tester=user_access.is_beta_tester,
        purchased_package=user_access.purchased_package,
        package_display_name=access.get_package_display_name(user_access.purchased_package),
        purchased_packages=user_access.purchased_packages,
        has_full_access=user_access.has_full_access,
        available_phases=user_access.available_phases,
    )
