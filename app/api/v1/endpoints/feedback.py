"""Beta feedback endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api import deps
from app.models.author_profile import AuthorProfile
from app.schemas.profile import FeedbackCreate, FeedbackResponse
from app.services import manuscripts, profiles

router = APIRouter()


@router.post("/", response_model=FeedbackResponse, status_code=status.HTTP_201_CREATED)
def submit_feedback(
    feedback_in: FeedbackCreate,
    db: Session = Depends(deps.get_db),
    current_profile: AuthorProfile = Depends(deps.get_current_profile),
):
    """Submit feedback from any page."""
    if feedback_in.manuscript_id is not None:
        manuscript = manuscripts.get_manuscript(db, feedback_in.manuscript_id)
        if not manuscript or manuscript.author_id != current_profile.id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Manuscript not found"
            )

    feedback = profiles.submit_feedback(
        db,
        current_profile,
        feedback_text=feedback_in.feedback_text,
        rating=feedback_in.rating,
        page_url=feedback_in.page_url,
        manuscript_id=feedback_in.manuscript_id,
    )
    if not feedback:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save feedback",
        )
    return feedback
