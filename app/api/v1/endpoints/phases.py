"""Editing phase endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api import deps
from app.models.author_profile import AuthorProfile
from app.models.editing_phase import PHASE_NUMBERS
from app.models.manuscript import Manuscript
from app.schemas.phase import PhaseCompletion, PhaseResponse, PhaseTransitionResult
from app.services import access, phases, snapshots

router = APIRouter()


def require_phase_access(db: Session, profile: AuthorProfile, phase_number: int) -> None:
    """403 unless the caller's package (or role) unlocks the phase."""
    user_access = access.get_user_access(db, profile.auth_user_id)
    if access.needs_upgrade_for_phase(user_access, phase_number):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Upgrade required for phase {phase_number}",
        )


def _transition_result(db: Session, manuscript: Manuscript, completed: int) -> PhaseTransitionResult:
    active = phases.get_active_phase(db, manuscript.id)
    return PhaseTransitionResult(
        success=True,
        completed_phase=completed,
        active_phase=active.phase_number if active else None,
    )


def _check_phase_number(phase_number: int) -> None:
    if phase_number not in PHASE_NUMBERS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Phase not found"
        )


@router.get("", response_model=list[PhaseResponse])
def list_phases(
    db: Session = Depends(deps.get_db),
    manuscript: Manuscript = Depends(deps.get_owned_manuscript),
):
    """All five phases in order."""
    return phases.get_all_phases(db, manuscript.id)


@router.get("/active", response_model=PhaseResponse)
def get_active_phase(
    db: Session = Depends(deps.get_db),
    manuscript: Manuscript = Depends(deps.get_owned_manuscript),
):
    phase = phases.get_active_phase(db, manuscript.id)
    if not phase:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No active phase"
        )
    return phase


@router.get("/{phase_number}/approval")
def get_approval_status(
    phase_number: int,
    db: Session = Depends(deps.get_db),
    manuscript: Manuscript = Depends(deps.get_owned_manuscript),
):
    """Whether every chapter is approved for the phase."""
    _check_phase_number(phase_number)
    return {
        "phase_number": phase_number,
        "all_chapters_approved": phases.are_all_chapters_approved(db, manuscript.id, phase_number),
    }


@router.post("/{phase_number}/transition", response_model=PhaseTransitionResult)
def transition_phase(
    phase_number: int,
    db: Session = Depends(deps.get_db),
    current_profile: AuthorProfile = Depends(deps.get_current_profile),
    manuscript: Manuscript = Depends(deps.get_owned_manuscript),
):
    """Complete the active phase and activate the next one (no snapshot)."""
    _check_phase_number(phase_number)
    require_phase_access(db, current_profile, phase_number)
    if not phases.transition_to_next_phase(db, manuscript.id, phase_number):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Phase {phase_number} cannot be completed yet",
        )
    return _transition_result(db, manuscript, phase_number)


@router.post("/{phase_number}/complete", response_model=PhaseTransitionResult)
def complete_phase(
    phase_number: int,
    completion: PhaseCompletion,
    db: Session = Depends(deps.get_db),
    current_profile: AuthorProfile = Depends(deps.get_current_profile),
    manuscript: Manuscript = Depends(deps.get_owned_manuscript),
):
    """Record the approved snapshot and advance, atomically."""
    _check_phase_number(phase_number)
    require_phase_access(db, current_profile, phase_number)
    if not phases.complete_phase(db, manuscript.id, phase_number, completion.editor_name):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Phase {phase_number} cannot be completed yet",
        )
    return _transition_result(db, manuscript, phase_number)


@router.post("/{phase_number}/snapshot", status_code=status.HTTP_201_CREATED)
def create_snapshot(
    phase_number: int,
    completion: PhaseCompletion,
    db: Session = Depends(deps.get_db),
    manuscript: Manuscript = Depends(deps.get_owned_manuscript),
):
    """Record an approved snapshot of the current chapters for a phase."""
    _check_phase_number(phase_number)
    if not snapshots.create_approved_snapshot(db, manuscript.id, phase_number, completion.editor_name):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create snapshot",
        )
    return {"success": True}


@router.get("/{phase_number}/snapshot")
def get_snapshot(
    phase_number: int,
    db: Session = Depends(deps.get_db),
    manuscript: Manuscript = Depends(deps.get_owned_manuscript),
):
    """Content of the newest approved snapshot for a phase."""
    _check_phase_number(phase_number)
    content = snapshots.get_approved_snapshot(db, manuscript.id, phase_number)
    if content is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No approved snapshot"
        )
    return {"phase_number": phase_number, "content": content}
