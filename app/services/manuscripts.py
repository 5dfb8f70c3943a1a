"""
Manuscript, chapter and editor-chat persistence.
"""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.types import utcnow
from app.models.chapter import Chapter
from app.models.editing_phase import EditingPhase, PhaseStatus
from app.models.editor_chat_message import EditorChatMessage
from app.models.manuscript import Manuscript, ManuscriptStatus
from app.models.manuscript_version import ManuscriptVersion
from app.models.publishing_progress import PublishingProgress
from app.services import realtime
from app.services.phases import build_phase_rows
from app.services.publishing import reset_publishing_progress
from app.services.snapshots import count_words

logger = logging.getLogger(__name__)

MANUSCRIPT_FIELDS = (
    "title",
    "genre",
    "current_word_count",
    "has_prologue",
    "has_epilogue",
    "full_text",
    "status",
)
CHAPTER_FIELDS = ("title", "content", "status")


def create_manuscript(
    db: Session,
    author_id: UUID,
    title: str,
    genre: Optional[str] = None,
    full_text: Optional[str] = None,
    word_count: Optional[int] = None,
) -> Optional[Manuscript]:
    """Create a manuscript together with its five phase rows (phase 1 active)."""
    manuscript = Manuscript(
        author_id=author_id,
        title=title,
        genre=genre,
        full_text=full_text,
        current_word_count=word_count if word_count is not None else count_words(full_text),
        status=ManuscriptStatus.ACTIVE.value,
        current_phase_number=1,
    )
    db.add(manuscript)
    try:
        db.flush()
        db.add_all(build_phase_rows(manuscript.id))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error creating manuscript for author %s", author_id)
        return None

    db.refresh(manuscript)
    logger.info("Created manuscript %s for author %s", manuscript.id, author_id)
    return manuscript


def list_manuscripts(db: Session, author_id: UUID, skip: int = 0, limit: int = 100) -> list[Manuscript]:
    return (
        db.query(Manuscript)
        .filter(Manuscript.author_id == author_id)
        .order_by(func.coalesce(Manuscript.updated_at, Manuscript.created_at).desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def get_manuscript(db: Session, manuscript_id: UUID) -> Optional[Manuscript]:
    return db.query(Manuscript).filter(Manuscript.id == manuscript_id).first()


def update_manuscript(db: Session, manuscript: Manuscript, changes: dict[str, Any]) -> bool:
    for key, value in changes.items():
        if key in MANUSCRIPT_FIELDS:
            setattr(manuscript, key, value)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error updating manuscript %s", manuscript.id)
        return False
    db.refresh(manuscript)
    return True


def reset_manuscript(
    db: Session,
    manuscript: Manuscript,
    title: Optional[str] = None,
    genre: Optional[str] = None,
    full_text: Optional[str] = None,
    word_count: Optional[int] = None,
) -> bool:
    """Start over with a re-uploaded manuscript.

    Deletes chapters, versions and chat history, clears the publishing
    workflow and puts phase 1 back to active with every other phase pending.
    All of it commits in one transaction.
    """
    manuscript_id = manuscript.id
    now = utcnow()
    try:
        for model in (Chapter, ManuscriptVersion, EditorChatMessage):
            db.query(model).filter(model.manuscript_id == manuscript_id).delete(synchronize_session=False)

        progress = (
            db.query(PublishingProgress).filter(PublishingProgress.manuscript_id == manuscript_id).first()
        )
        if progress is not None:
            reset_publishing_progress(db, progress)

        phases = (
            db.query(EditingPhase)
            .filter(EditingPhase.manuscript_id == manuscript_id)
            .order_by(EditingPhase.phase_number.asc())
            .all()
        )
        for phase in phases:
            phase.phase_status = PhaseStatus.PENDING.value
            phase.started_at = None
            phase.completed_at = None
            phase.chapters_analyzed = 0
            phase.chapters_approved = 0
        # Pending everywhere first; only one phase may be active at a time
        db.flush()
        for phase in phases:
            if phase.phase_number == 1:
                phase.phase_status = PhaseStatus.ACTIVE.value
                phase.started_at = now

        if title is not None:
            manuscript.title = title
        if genre is not None:
            manuscript.genre = genre
        manuscript.full_text = full_text
        manuscript.current_word_count = word_count if word_count is not None else count_words(full_text)
        manuscript.total_chapters = 0
        manuscript.has_prologue = False
        manuscript.has_epilogue = False
        manuscript.status = ManuscriptStatus.ACTIVE.value
        manuscript.current_phase_number = 1
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error resetting manuscript %s", manuscript_id)
        return False

    for phase in phases:
        realtime.publish_row_change("editing_phases", phase)
    if progress is not None:
        realtime.publish_row_change("publishing_progress", progress)
    logger.info("Reset manuscript %s for re-upload", manuscript_id)
    return True


# ──────── Chapters ────────


def list_chapters(db: Session, manuscript_id: UUID) -> list[Chapter]:
    return (
        db.query(Chapter)
        .filter(Chapter.manuscript_id == manuscript_id)
        .order_by(Chapter.chapter_number.asc())
        .all()
    )


def get_chapter(db: Session, manuscript_id: UUID, chapter_id: UUID) -> Optional[Chapter]:
    return (
        db.query(Chapter)
        .filter(Chapter.id == chapter_id, Chapter.manuscript_id == manuscript_id)
        .first()
    )


def _refresh_totals(db: Session, manuscript: Manuscript) -> None:
    db.flush()
    base = db.query(Chapter).filter(Chapter.manuscript_id == manuscript.id)
    manuscript.total_chapters = base.count()
    manuscript.has_prologue = base.filter(Chapter.chapter_number == 0).count() > 0
    manuscript.current_word_count = (
        db.query(func.coalesce(func.sum(Chapter.word_count), 0))
        .filter(Chapter.manuscript_id == manuscript.id)
        .scalar()
    )


def create_chapter(
    db: Session,
    manuscript: Manuscript,
    chapter_number: int,
    title: str = "",
    content: str = "",
) -> Optional[Chapter]:
    """Add a chapter; None when the number is already taken."""
    chapter = Chapter(
        manuscript_id=manuscript.id,
        chapter_number=chapter_number,
        title=title,
        content=content,
        word_count=count_words(content),
    )
    db.add(chapter)
    try:
        _refresh_totals(db, manuscript)
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Chapter %s already exists in manuscript %s", chapter_number, manuscript.id)
        return None
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error creating chapter %s in manuscript %s", chapter_number, manuscript.id)
        return None

    db.refresh(chapter)
    return chapter


def update_chapter(db: Session, manuscript: Manuscript, chapter: Chapter, changes: dict[str, Any]) -> bool:
    for key, value in changes.items():
        if key in CHAPTER_FIELDS:
            setattr(chapter, key, value)
    if "content" in changes:
        chapter.word_count = count_words(chapter.content)
    try:
        _refresh_totals(db, manuscript)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error updating chapter %s", chapter.id)
        return False
    db.refresh(chapter)
    return True


# ──────── Editor chat ────────


def list_chat_messages(
    db: Session, manuscript_id: UUID, phase_number: int, chapter_number: Optional[int] = None
) -> list[EditorChatMessage]:
    query = db.query(EditorChatMessage).filter(
        EditorChatMessage.manuscript_id == manuscript_id,
        EditorChatMessage.phase_number == phase_number,
    )
    if chapter_number is not None:
        query = query.filter(EditorChatMessage.chapter_number == chapter_number)
    return query.order_by(EditorChatMessage.created_at.asc()).all()


def add_chat_message(
    db: Session,
    manuscript_id: UUID,
    phase_number: int,
    sender: str,
    message: str,
    chapter_number: Optional[int] = None,
) -> Optional[EditorChatMessage]:
    entry = EditorChatMessage(
        manuscript_id=manuscript_id,
        phase_number=phase_number,
        chapter_number=chapter_number,
        sender=sender,
        message=message,
    )
    db.add(entry)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error saving chat message for manuscript %s", manuscript_id)
        return None
    db.refresh(entry)
    return entry
