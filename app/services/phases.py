"""
Editing phase state machine.

Phases 1-5 activate strictly in order and at most one is active per
manuscript. Every transition runs in a single transaction: the completed
phase, the newly active phase and the manuscript's denormalized
``current_phase_number`` commit together or not at all.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.types import utcnow
from app.models.chapter import APPROVAL_PHASES, Chapter, approval_column
from app.models.editing_phase import EDITOR_CONFIG, PHASE_NUMBERS, EditingPhase, PhaseStatus
from app.models.manuscript import Manuscript
from app.models.publishing_progress import PublishingProgress
from app.services import access, realtime
from app.services.snapshots import build_approved_snapshot, count_words

logger = logging.getLogger(__name__)

# Phases activated by a completed checkout, per package
PACKAGE_PHASES = {
    "publishing": (4,),
    "marketing": (5,),
    "complete": (4, 5),
}

# Phases that stay pending after their predecessor until the author pays
PURCHASED_PHASES = frozenset(number for numbers in PACKAGE_PHASES.values() for number in numbers)


def get_active_phase(db: Session, manuscript_id: UUID) -> Optional[EditingPhase]:
    return (
        db.query(EditingPhase)
        .filter(
            EditingPhase.manuscript_id == manuscript_id,
            EditingPhase.phase_status == PhaseStatus.ACTIVE.value,
        )
        .first()
    )


def get_all_phases(db: Session, manuscript_id: UUID) -> list[EditingPhase]:
    return (
        db.query(EditingPhase)
        .filter(EditingPhase.manuscript_id == manuscript_id)
        .order_by(EditingPhase.phase_number.asc())
        .all()
    )


def build_phase_rows(manuscript_id: UUID) -> list[EditingPhase]:
    """Fresh phase rows for a new manuscript: phase 1 active, the rest pending."""
    now = utcnow()
    rows = []
    for number in PHASE_NUMBERS:
        config = EDITOR_CONFIG[number]
        rows.append(
            EditingPhase(
                manuscript_id=manuscript_id,
                phase_number=number,
                phase_name=config["phase_name"],
                editor_name=config["editor_name"],
                phase_status=PhaseStatus.ACTIVE.value if number == 1 else PhaseStatus.PENDING.value,
                started_at=now if number == 1 else None,
            )
        )
    return rows


def approve_chapter(
    db: Session, chapter_id: UUID, phase_number: int, content: Optional[str] = None
) -> bool:
    """Stamp a chapter's approval for a phase, optionally saving edited content."""
    if phase_number not in APPROVAL_PHASES:
        return False

    chapter = db.query(Chapter).filter(Chapter.id == chapter_id).first()
    if not chapter:
        return False

    setattr(chapter, approval_column(phase_number), utcnow())
    if content is not None:
        chapter.content = content
        chapter.word_count = count_words(content)

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error approving chapter %s for phase %s", chapter_id, phase_number)
        return False
    return True


def _chapter_counts(db: Session, manuscript_id: UUID, phase_number: int) -> tuple[int, int]:
    column = getattr(Chapter, approval_column(phase_number))
    base = db.query(Chapter).filter(Chapter.manuscript_id == manuscript_id)
    return base.count(), base.filter(column.isnot(None)).count()


def are_all_chapters_approved(db: Session, manuscript_id: UUID, phase_number: int) -> bool:
    """True iff the manuscript has chapters and all are approved for the phase."""
    if phase_number not in APPROVAL_PHASES:
        return False
    total, approved = _chapter_counts(db, manuscript_id, phase_number)
    return total > 0 and total == approved


def _gate_met(db: Session, manuscript_id: UUID, phase_number: int) -> bool:
    if phase_number in APPROVAL_PHASES:
        return are_all_chapters_approved(db, manuscript_id, phase_number)
    if phase_number == 4:
        progress = (
            db.query(PublishingProgress)
            .filter(PublishingProgress.manuscript_id == manuscript_id)
            .first()
        )
        return progress is not None and progress.all_steps_completed_at is not None
    return False


def _apply_transition(
    db: Session, manuscript_id: UUID, current_phase: int
) -> Optional[list[EditingPhase]]:
    """Stage the transition writes without committing.

    Returns the changed phase rows, or None when a precondition fails (in
    which case nothing has been written).
    """
    if current_phase not in PHASE_NUMBERS or current_phase + 1 not in PHASE_NUMBERS:
        logger.warning("No phase follows phase %s", current_phase)
        return None

    phases = {
        p.phase_number: p
        for p in db.query(EditingPhase)
        .filter(EditingPhase.manuscript_id == manuscript_id)
        .with_for_update()
        .all()
    }
    current = phases.get(current_phase)
    following = phases.get(current_phase + 1)
    if current is None or following is None:
        logger.warning("Manuscript %s is missing phase rows", manuscript_id)
        return None

    active = [p.phase_number for p in phases.values() if p.phase_status == PhaseStatus.ACTIVE.value]
    if active != [current_phase]:
        logger.warning(
            "Phase %s is not the active phase of manuscript %s (active: %s)",
            current_phase,
            manuscript_id,
            active,
        )
        return None

    if not _gate_met(db, manuscript_id, current_phase):
        logger.warning("Phase %s of manuscript %s is not ready to complete", current_phase, manuscript_id)
        return None

    manuscript = db.query(Manuscript).filter(Manuscript.id == manuscript_id).first()
    if manuscript is None:
        return None

    now = utcnow()
    total_chapters = db.query(Chapter).filter(Chapter.manuscript_id == manuscript_id).count()

    current.phase_status = PhaseStatus.COMPLETE.value
    current.completed_at = now
    current.chapters_approved = total_chapters
    # Flush before activating the next phase; a partial unique index allows
    # only one active phase per manuscript
    db.flush()

    manuscript.current_phase_number = current_phase + 1
    if following.phase_number in PURCHASED_PHASES and not access.has_phase_access(
        access.get_author_access(db, manuscript.author_id), following.phase_number
    ):
        logger.info(
            "Phase %s of manuscript %s stays pending until it is purchased",
            following.phase_number,
            manuscript_id,
        )
        return [current]

    following.phase_status = PhaseStatus.ACTIVE.value
    following.started_at = now
    return [current, following]


def commit_phase_changes(db: Session, changed: list[EditingPhase], action: str) -> bool:
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error committing phase %s", action)
        return False

    for phase in changed:
        realtime.publish_row_change("editing_phases", phase)
    return True


def transition_to_next_phase(db: Session, manuscript_id: UUID, current_phase: int) -> bool:
    """Complete ``current_phase`` and activate the next one.

    Phases 4 and 5 only activate here when the manuscript's author already
    has access to them; otherwise they stay pending for the purchase webhook.

    Returns False without writing anything when the phase is not the active
    one, its gate is not met, or no next phase exists.
    """
    try:
        changed = _apply_transition(db, manuscript_id, current_phase)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error transitioning manuscript %s from phase %s", manuscript_id, current_phase)
        return False

    if changed is None:
        db.rollback()
        return False

    if not commit_phase_changes(db, changed, "transition"):
        return False
    logger.info("Transitioned manuscript %s from phase %s to %s", manuscript_id, current_phase, current_phase + 1)
    return True


def complete_phase(
    db: Session, manuscript_id: UUID, phase_number: int, editor_name: Optional[str] = None
) -> bool:
    """Record the approved snapshot and transition, in one transaction."""
    try:
        changed = _apply_transition(db, manuscript_id, phase_number)
        if changed is None:
            db.rollback()
            return False
        build_approved_snapshot(db, manuscript_id, phase_number, editor_name)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error completing phase %s of manuscript %s", phase_number, manuscript_id)
        return False

    return commit_phase_changes(db, changed, "completion")


def stage_purchased_phases(db: Session, manuscript_id: UUID, package: str) -> list[EditingPhase]:
    """Stage activation of the phases a package pays for (caller commits).

    A purchased phase becomes active only if its predecessor is complete and
    no other phase is active; otherwise it stays pending and the regular
    transition activates it later. Returns the phase rows changed.
    """
    wanted = PACKAGE_PHASES.get(package, ())
    if not wanted:
        return []

    phases = {
        p.phase_number: p
        for p in db.query(EditingPhase)
        .filter(EditingPhase.manuscript_id == manuscript_id)
        .with_for_update()
        .all()
    }
    manuscript = db.query(Manuscript).filter(Manuscript.id == manuscript_id).first()
    if manuscript is None or not phases:
        logger.warning("Cannot activate phases for unknown manuscript %s", manuscript_id)
        return []

    changed = []
    for number in wanted:
        phase = phases.get(number)
        prior = phases.get(number - 1)
        if phase is None or phase.phase_status != PhaseStatus.PENDING.value:
            continue
        if prior is None or prior.phase_status != PhaseStatus.COMPLETE.value:
            logger.info(
                "Phase %s of manuscript %s stays pending until phase %s completes",
                number,
                manuscript_id,
                number - 1,
            )
            continue
        if any(p.phase_status == PhaseStatus.ACTIVE.value for p in phases.values()):
            continue
        phase.phase_status = PhaseStatus.ACTIVE.value
        phase.started_at = utcnow()
        manuscript.current_phase_number = number
        changed.append(phase)
    return changed


def activate_purchased_phases(db: Session, manuscript_id: UUID, package: str) -> list[int]:
    """Activate purchased phases where the ordering allows; returns their numbers."""
    try:
        changed = stage_purchased_phases(db, manuscript_id, package)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error activating purchased phases for manuscript %s", manuscript_id)
        return []

    if not changed:
        db.rollback()
        return []
    if not commit_phase_changes(db, changed, "activation"):
        return []

    activated = [phase.phase_number for phase in changed]
    logger.info("Activated phases %s for manuscript %s", activated, manuscript_id)
    return activated
