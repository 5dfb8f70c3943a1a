"""
Author profiles, beta feedback and admin dashboard queries.
"""

import logging
from datetime import timedelta
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.types import utcnow
from app.models.author_profile import AuthorProfile
from app.models.beta_feedback import BetaFeedback
from app.models.editing_phase import EditingPhase

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("first_name", "last_name", "phone", "genre", "writing_experience", "onboarding_complete")
ACTIVE_WINDOW = timedelta(days=7)


def get_profile_by_auth_user(db: Session, auth_user_id: UUID) -> Optional[AuthorProfile]:
    return db.query(AuthorProfile).filter(AuthorProfile.auth_user_id == auth_user_id).first()


def ensure_profile(db: Session, auth_user_id: UUID, email: Optional[str]) -> Optional[AuthorProfile]:
    """Profile for a provider user, created on first sight.

    The provider's signup trigger normally creates the row; this covers
    users whose first request arrives before it has run.
    """
    profile = get_profile_by_auth_user(db, auth_user_id)
    if profile is not None:
        return profile

    profile = AuthorProfile(auth_user_id=auth_user_id, email=email or "")
    db.add(profile)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        # Try to fetch again in case of race condition
        profile = get_profile_by_auth_user(db, auth_user_id)
        if profile is None:
            logger.exception("Failed to create profile for auth user %s", auth_user_id)
        return profile

    db.refresh(profile)
    logger.info("Created author profile %s for auth user %s", profile.id, auth_user_id)
    return profile


def update_profile(db: Session, profile: AuthorProfile, changes: dict[str, Any]) -> bool:
    for key, value in changes.items():
        if key in PROFILE_FIELDS:
            setattr(profile, key, value)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error updating profile %s", profile.id)
        return False
    db.refresh(profile)
    return True


def track_login(db: Session, profile: AuthorProfile) -> bool:
    profile.last_login_at = utcnow()
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error tracking login for profile %s", profile.id)
        return False
    return True


def upsert_beta_tester(
    db: Session,
    auth_user_id: UUID,
    email: str,
    first_name: str,
    last_name: str,
    created_by: AuthorProfile,
) -> Optional[AuthorProfile]:
    """Mark a newly created provider user as a beta tester.

    Returns None (after logging) on failure; the provider account exists
    either way.
    """
    try:
        profile = get_profile_by_auth_user(db, auth_user_id)
        if profile is None:
            profile = AuthorProfile(auth_user_id=auth_user_id, email=email)
            db.add(profile)
        profile.first_name = first_name
        profile.last_name = last_name
        profile.is_beta_tester = True
        profile.created_by_admin_id = created_by.auth_user_id
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error updating profile for new user %s", auth_user_id)
        return None

    db.refresh(profile)
    return profile


def submit_feedback(
    db: Session,
    author: AuthorProfile,
    feedback_text: str,
    rating: Optional[int] = None,
    page_url: Optional[str] = None,
    manuscript_id: Optional[UUID] = None,
) -> Optional[BetaFeedback]:
    feedback = BetaFeedback(
        author_id=author.id,
        manuscript_id=manuscript_id,
        feedback_text=feedback_text,
        rating=rating,
        page_url=page_url,
    )
    db.add(feedback)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error saving feedback from %s", author.id)
        return None
    db.refresh(feedback)
    return feedback


def get_admin_stats(db: Session) -> dict[str, Any]:
    """Beta program dashboard numbers for the last week."""
    since = utcnow() - ACTIVE_WINDOW
    beta = db.query(AuthorProfile).filter(AuthorProfile.is_beta_tester.is_(True))
    average = db.query(func.avg(BetaFeedback.rating)).filter(BetaFeedback.rating.isnot(None)).scalar()

    return {
        "total_beta_testers": beta.count(),
        "active_this_week": beta.filter(AuthorProfile.last_login_at >= since).count(),
        "phase_completions": db.query(EditingPhase)
        .filter(EditingPhase.completed_at.isnot(None), EditingPhase.completed_at >= since)
        .count(),
        "average_rating": round(float(average), 1) if average is not None else 0,
    }
