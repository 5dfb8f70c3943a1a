"""Publishing workflow (phase 4) endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api import deps
from app.api.v1.endpoints.phases import require_phase_access
from app.models.author_profile import AuthorProfile
from app.models.manuscript import Manuscript
from app.models.publishing_progress import PublishingProgress
from app.schemas.publishing import (
    AssessmentSubmit,
    CoverDesign,
    CoverDesignCreate,
    CoverSelection,
    PublishingProgressResponse,
    StepCompletion,
)
from app.services import publishing, realtime

router = APIRouter()

PUBLISHING_PHASE = 4


def progress_to_response(progress: PublishingProgress) -> PublishingProgressResponse:
    """Stored row plus its derived navigation."""
    row = realtime.row_image(progress)
    overview = publishing.publishing_overview(row)
    return PublishingProgressResponse.model_validate(
        {
            **row,
            "elements": overview["elements"],
            "progress_percentage": overview["progress_percentage"],
        }
    )


def _publishing_manuscript(
    db: Session = Depends(deps.get_db),
    current_profile: AuthorProfile = Depends(deps.get_current_profile),
    manuscript: Manuscript = Depends(deps.get_owned_manuscript),
) -> Manuscript:
    require_phase_access(db, current_profile, PUBLISHING_PHASE)
    return manuscript


def _reload(db: Session, manuscript: Manuscript) -> PublishingProgressResponse:
    progress = publishing.get_publishing_progress(db, manuscript.id)
    if not progress:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Publishing progress not found"
        )
    return progress_to_response(progress)


def _conflict(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)


@router.get("", response_model=PublishingProgressResponse)
def get_publishing_progress(
    db: Session = Depends(deps.get_db),
    manuscript: Manuscript = Depends(_publishing_manuscript),
):
    """Get (creating on first visit) the publishing progress row."""
    progress = publishing.initialize_publishing_progress(db, manuscript.id)
    if not progress:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to initialize publishing progress",
        )
    return progress_to_response(progress)


@router.post("/assessment", response_model=PublishingProgressResponse)
def complete_assessment(
    assessment: AssessmentSubmit,
    db: Session = Depends(deps.get_db),
    manuscript: Manuscript = Depends(_publishing_manuscript),
):
    if not publishing.complete_assessment(
        db,
        manuscript.id,
        assessment.answers,
        publishing_plan=assessment.publishing_plan,
        expected_version=assessment.expected_version,
    ):
        raise _conflict("Assessment could not be saved")
    return _reload(db, manuscript)


@router.post("/covers", response_model=CoverDesign, status_code=status.HTTP_201_CREATED)
def add_cover_design(
    cover_in: CoverDesignCreate,
    db: Session = Depends(deps.get_db),
    manuscript: Manuscript = Depends(_publishing_manuscript),
):
    """Store a generated cover option."""
    cover = publishing.add_cover_design(
        db,
        manuscript.id,
        url=cover_in.url,
        prompt=cover_in.prompt,
        expected_version=cover_in.expected_version,
    )
    if not cover:
        raise _conflict("Cover could not be added")
    return cover


@router.post("/covers/select", response_model=PublishingProgressResponse)
def select_cover(
    selection: CoverSelection,
    db: Session = Depends(deps.get_db),
    manuscript: Manuscript = Depends(_publishing_manuscript),
):
    if not publishing.select_cover(
        db, manuscript.id, selection.cover_id, expected_version=selection.expected_version
    ):
        raise _conflict(f"Cover {selection.cover_id} could not be selected")
    return _reload(db, manuscript)


@router.post("/steps/{step_id}/complete", response_model=PublishingProgressResponse)
def complete_step(
    step_id: str,
    completion: Optional[StepCompletion] = None,
    db: Session = Depends(deps.get_db),
    manuscript: Manuscript = Depends(_publishing_manuscript),
):
    expected_version = completion.expected_version if completion else None
    if not publishing.complete_step(db, manuscript.id, step_id, expected_version=expected_version):
        raise _conflict(f"Step {step_id} cannot be completed")
    return _reload(db, manuscript)
