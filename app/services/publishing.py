"""
Publishing workflow (phase 4): declarative step graph and progress writes.

The step list, lock state, completion and current step are all derived
from one publishing_progress row by pure functions, so the API, realtime
consumers and tests compute identical views from the same row image.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.types import utcnow
from app.models.publishing_progress import PublishingProgress
from app.services import realtime

logger = logging.getLogger(__name__)

SELF_PUBLISHING_GOALS = frozenset({"self-publish-all", "self-publish-amazon", "hybrid"})


@dataclass(frozen=True)
class ProgressState:
    """The fields of a publishing_progress row the step graph reads."""

    assessment_completed: bool = False
    assessment_answers: Mapping[str, Any] = field(default_factory=dict)
    selected_cover_id: Optional[int] = None
    step_data: Mapping[str, Any] = field(default_factory=dict)
    formatting_completed_at: Any = None
    metadata_completed_at: Any = None
    all_steps_completed_at: Any = None

    @classmethod
    def from_row(cls, row: Any) -> "ProgressState":
        """Build from an ORM instance or a row-image dict."""
        if isinstance(row, Mapping):
            get = row.get
        else:
            def get(key, default=None):
                return getattr(row, key, default)

        return cls(
            assessment_completed=bool(get("assessment_completed")),
            assessment_answers=get("assessment_answers") or {},
            selected_cover_id=get("selected_cover_id"),
            step_data=get("step_data") or {},
            formatting_completed_at=get("formatting_completed_at"),
            metadata_completed_at=get("metadata_completed_at"),
            all_steps_completed_at=get("all_steps_completed_at"),
        )


def includes_platform_setup(answers: Mapping[str, Any]) -> bool:
    platforms = answers.get("platforms") or []
    return len(platforms) > 0 and "unsure" not in platforms


def includes_isbn(answers: Mapping[str, Any]) -> bool:
    return answers.get("publishing_goal") in SELF_PUBLISHING_GOALS


def _always(answers: Mapping[str, Any]) -> bool:
    return True


@dataclass(frozen=True)
class PublishingStep:
    id: str
    label: str
    stage: str
    is_complete: Callable[[ProgressState], bool]
    is_included: Callable[[Mapping[str, Any]], bool] = _always


STEP_GRAPH = (
    PublishingStep("overview", "Publishing Overview", "assessment",
                   lambda s: s.assessment_completed),
    PublishingStep("cover-design", "Cover Design", "cover-design",
                   lambda s: s.selected_cover_id is not None),
    PublishingStep("front-matter", "Front Matter", "formatting",
                   lambda s: bool(s.step_data.get("front_matter_complete"))),
    PublishingStep("back-matter", "Back Matter", "formatting",
                   lambda s: bool(s.step_data.get("back_matter_complete"))),
    PublishingStep("formatting", "Multi-Platform Formatting", "formatting",
                   lambda s: s.formatting_completed_at is not None),
    PublishingStep("platform-setup", "Platform Setup", "platform-setup",
                   lambda s: bool(s.step_data.get("platforms_configured")),
                   includes_platform_setup),
    PublishingStep("metadata", "Metadata Manager", "metadata",
                   lambda s: s.metadata_completed_at is not None),
    PublishingStep("isbn", "ISBN Management", "isbn",
                   lambda s: bool(s.step_data.get("isbn_assigned")),
                   includes_isbn),
    PublishingStep("pre-launch", "Pre-Launch Checklist", "pre-launch",
                   lambda s: s.all_steps_completed_at is not None),
)

STEPS_BY_ID = {step.id: step for step in STEP_GRAPH}
STAGES = ("assessment", "cover-design", "formatting", "platform-setup", "metadata", "isbn", "pre-launch")

# step id -> flag written into step_data when the step is marked complete
STEP_DATA_FLAGS = {
    "front-matter": "front_matter_complete",
    "back-matter": "back_matter_complete",
    "platform-setup": "platforms_configured",
    "isbn": "isbn_assigned",
}
# step id -> milestone timestamp column
STEP_MILESTONES = {
    "formatting": "formatting_completed_at",
    "metadata": "metadata_completed_at",
    "pre-launch": "all_steps_completed_at",
}


def included_steps(state: ProgressState) -> list[PublishingStep]:
    return [step for step in STEP_GRAPH if step.is_included(state.assessment_answers)]


def resolve_elements(state: ProgressState) -> list[dict[str, Any]]:
    """Navigation elements with complete/active/locked flags."""
    done = state.assessment_completed
    elements = []
    for step in included_steps(state):
        if step.id == "overview":
            is_active, is_locked = not done, False
        elif step.id == "cover-design":
            is_active, is_locked = done and state.selected_cover_id is None, not done
        else:
            is_active, is_locked = done, not done
        elements.append(
            {
                "id": step.id,
                "label": step.label,
                "is_complete": step.is_complete(state),
                "is_active": is_active,
                "is_locked": is_locked,
            }
        )
    return elements


def progress_percentage(elements: list[dict[str, Any]]) -> int:
    if not elements:
        return 0
    completed = sum(1 for element in elements if element["is_complete"])
    return math.floor(completed / len(elements) * 100 + 0.5)


def resolve_current_step(state: ProgressState) -> str:
    """First stage with an incomplete included step, or "complete"."""
    steps = included_steps(state)
    for stage in STAGES:
        stage_steps = [step for step in steps if step.stage == stage]
        if stage_steps and not all(step.is_complete(state) for step in stage_steps):
            return stage
    return "complete"


def publishing_overview(row: Any) -> dict[str, Any]:
    """Derived view of one progress row: elements, percentage, current step."""
    state = ProgressState.from_row(row)
    elements = resolve_elements(state)
    return {
        "elements": elements,
        "progress_percentage": progress_percentage(elements),
        "current_step": resolve_current_step(state),
    }


def derive_from_rows(rows: dict[str, dict]) -> Optional[dict[str, Any]]:
    """RowMirror hook for the publishing_progress channel (one row)."""
    if not rows:
        return None
    return publishing_overview(next(iter(rows.values())))


# ──────── Persistence ────────


def get_publishing_progress(db: Session, manuscript_id: UUID) -> Optional[PublishingProgress]:
    return (
        db.query(PublishingProgress)
        .filter(PublishingProgress.manuscript_id == manuscript_id)
        .first()
    )


def initialize_publishing_progress(db: Session, manuscript_id: UUID) -> Optional[PublishingProgress]:
    """Get or create the manuscript's progress row."""
    existing = get_publishing_progress(db, manuscript_id)
    if existing:
        return existing

    progress = PublishingProgress(
        manuscript_id=manuscript_id,
        current_step="assessment",
        assessment_completed=False,
        completed_steps=[],
        cover_designs=[],
        step_data={},
        assessment_answers={},
        front_matter={},
        back_matter={},
    )
    db.add(progress)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        # A concurrent request may have created it first
        existing = get_publishing_progress(db, manuscript_id)
        if existing is None:
            logger.exception("Error creating publishing progress for %s", manuscript_id)
        return existing

    db.refresh(progress)
    logger.info("Created publishing progress %s for manuscript %s", progress.id, manuscript_id)
    return progress


def _load_for_write(
    db: Session, manuscript_id: UUID, expected_version: Optional[int]
) -> Optional[PublishingProgress]:
    progress = get_publishing_progress(db, manuscript_id)
    if progress is None:
        logger.warning("Publishing progress not found for manuscript %s", manuscript_id)
        return None
    if expected_version is not None and progress.version != expected_version:
        logger.warning(
            "Stale write to publishing progress %s (expected v%s, found v%s)",
            progress.id,
            expected_version,
            progress.version,
        )
        return None
    return progress


def _with_completed(progress: PublishingProgress, *steps: str) -> list[str]:
    completed = list(progress.completed_steps or [])
    for step in steps:
        if step not in completed:
            completed.append(step)
    return completed


def _commit(db: Session, progress: PublishingProgress, action: str) -> bool:
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error during %s for publishing progress", action)
        return False
    realtime.publish_row_change("publishing_progress", progress)
    return True


def complete_assessment(
    db: Session,
    manuscript_id: UUID,
    answers: dict[str, Any],
    publishing_plan: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> bool:
    progress = _load_for_write(db, manuscript_id, expected_version)
    if progress is None:
        return False

    progress.assessment_completed = True
    progress.assessment_completed_at = utcnow()
    progress.assessment_answers = dict(answers)
    progress.publishing_plan = publishing_plan
    progress.completed_steps = _with_completed(progress, "assessment")
    progress.current_step = resolve_current_step(ProgressState.from_row(progress))
    return _commit(db, progress, "assessment completion")


def add_cover_design(
    db: Session,
    manuscript_id: UUID,
    url: str,
    prompt: str,
    expected_version: Optional[int] = None,
) -> Optional[dict[str, Any]]:
    """Append a cover option; returns the new cover entry."""
    progress = _load_for_write(db, manuscript_id, expected_version)
    if progress is None:
        return None

    covers = [dict(cover) for cover in progress.cover_designs or []]
    cover = {
        "id": max((c.get("id") or 0 for c in covers), default=0) + 1,
        "url": url,
        "prompt": prompt,
        "selected": False,
        "created_at": utcnow().isoformat(),
    }
    progress.cover_designs = covers + [cover]
    if not _commit(db, progress, "cover design"):
        return None
    return cover


def select_cover(
    db: Session, manuscript_id: UUID, cover_id: int, expected_version: Optional[int] = None
) -> bool:
    """Mark exactly one cover as selected and re-derive the current step.

    The UPDATE is version-checked, so of two concurrent selections only the
    first commits; the other fails instead of producing two selected covers.
    """
    progress = _load_for_write(db, manuscript_id, expected_version)
    if progress is None:
        return False

    covers = progress.cover_designs or []
    if not any(cover.get("id") == cover_id for cover in covers):
        logger.warning("Cover %s not found for manuscript %s", cover_id, manuscript_id)
        return False

    progress.cover_designs = [{**cover, "selected": cover.get("id") == cover_id} for cover in covers]
    progress.selected_cover_id = cover_id
    progress.cover_selected_at = utcnow()
    progress.completed_steps = _with_completed(progress, "assessment", "cover-design")
    progress.current_step = resolve_current_step(ProgressState.from_row(progress))
    return _commit(db, progress, "cover selection")


def complete_step(
    db: Session, manuscript_id: UUID, step_id: str, expected_version: Optional[int] = None
) -> bool:
    """Mark one post-cover step complete.

    Fails without writing for unknown, locked or excluded steps, and for
    pre-launch while any other included step is open.
    """
    if step_id not in STEP_DATA_FLAGS and step_id not in STEP_MILESTONES:
        return False

    progress = _load_for_write(db, manuscript_id, expected_version)
    if progress is None:
        return False

    state = ProgressState.from_row(progress)
    if not state.assessment_completed:
        return False
    steps = included_steps(state)
    if STEPS_BY_ID[step_id] not in steps:
        return False
    if step_id == "pre-launch" and not all(
        step.is_complete(state) for step in steps if step.id != "pre-launch"
    ):
        return False

    if step_id in STEP_DATA_FLAGS:
        progress.step_data = {**(progress.step_data or {}), STEP_DATA_FLAGS[step_id]: True}
    else:
        setattr(progress, STEP_MILESTONES[step_id], utcnow())

    progress.completed_steps = _with_completed(progress, step_id)
    progress.current_step = resolve_current_step(ProgressState.from_row(progress))
    return _commit(db, progress, f"{step_id} completion")


def reset_publishing_progress(db: Session, progress: PublishingProgress) -> None:
    """Stage a reset of every workflow field (caller commits)."""
    progress.current_step = "assessment"
    progress.completed_steps = []
    progress.assessment_completed = False
    progress.assessment_completed_at = None
    progress.assessment_answers = {}
    progress.publishing_plan = None
    progress.cover_designs = []
    progress.selected_cover_id = None
    progress.cover_selected_at = None
    progress.step_data = {}
    progress.front_matter = {}
    progress.back_matter = {}
    progress.formatting_completed_at = None
    progress.metadata_completed_at = None
    progress.all_steps_completed_at = None
