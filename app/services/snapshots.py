"""
Snapshot recorder: collates a manuscript's chapters into immutable versions.
"""

import logging
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.chapter import Chapter
from app.models.editing_phase import EDITOR_CONFIG
from app.models.manuscript_version import APPROVED_SNAPSHOT, ManuscriptVersion

logger = logging.getLogger(__name__)

SECTION_SEPARATOR = "\n\n---\n\n"


def chapter_label(chapter_number: int) -> str:
    return "Prologue" if chapter_number == 0 else f"Chapter {chapter_number}"


def collate_chapters(chapters: Iterable[Chapter]) -> str:
    """Join chapters, already ordered by chapter_number, into one document."""
    return SECTION_SEPARATOR.join(
        f"# {chapter_label(ch.chapter_number)}: {ch.title or ''}\n\n{ch.content or ''}"
        for ch in chapters
    )


def count_words(text: Optional[str]) -> int:
    """Number of whitespace-delimited tokens."""
    return len(text.split()) if text else 0


def build_approved_snapshot(
    db: Session, manuscript_id: UUID, phase_number: int, editor_name: Optional[str] = None
) -> ManuscriptVersion:
    """Add (but do not commit) an approved snapshot of the current chapters.

    Lets callers fold the snapshot into a larger transaction.
    """
    editor = editor_name or EDITOR_CONFIG[phase_number]["editor_name"]
    chapters = (
        db.query(Chapter)
        .filter(Chapter.manuscript_id == manuscript_id)
        .order_by(Chapter.chapter_number.asc())
        .all()
    )
    content = collate_chapters(chapters)
    version = ManuscriptVersion(
        manuscript_id=manuscript_id,
        phase_number=phase_number,
        version_type=APPROVED_SNAPSHOT,
        content=content,
        word_count=count_words(content),
        created_by_editor=editor,
        notes=f"{editor} phase complete - all chapters approved",
    )
    db.add(version)
    return version


def create_approved_snapshot(
    db: Session, manuscript_id: UUID, phase_number: int, editor_name: Optional[str] = None
) -> bool:
    """Insert one approved_snapshot version for the phase.

    Returns False (after logging) when the chapters cannot be read or the
    insert fails.
    """
    try:
        build_approved_snapshot(db, manuscript_id, phase_number, editor_name)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            "Error creating approved snapshot for manuscript %s phase %s",
            manuscript_id,
            phase_number,
        )
        return False

    logger.info("Created approved snapshot for manuscript %s phase %s", manuscript_id, phase_number)
    return True


def get_approved_snapshot(
    db: Session, manuscript_id: UUID, phase_number: int
) -> Optional[str]:
    """Content of the newest approved snapshot for a phase, or None."""
    version = (
        db.query(ManuscriptVersion)
        .filter(
            ManuscriptVersion.manuscript_id == manuscript_id,
            ManuscriptVersion.phase_number == phase_number,
            ManuscriptVersion.version_type == APPROVED_SNAPSHOT,
        )
        .order_by(ManuscriptVersion.created_at.desc())
        .first()
    )
    return version.content if version else None


def list_versions(db: Session, manuscript_id: UUID) -> list[ManuscriptVersion]:
    return (
        db.query(ManuscriptVersion)
        .filter(ManuscriptVersion.manuscript_id == manuscript_id)
        .order_by(ManuscriptVersion.phase_number.asc(), ManuscriptVersion.created_at.desc())
        .all()
    )
