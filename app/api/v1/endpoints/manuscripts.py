"""Manuscript, chapter, version and editor chat endpoints."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from app.api import deps
from app.models.author_profile import AuthorProfile
from app.models.manuscript import Manuscript
from app.schemas.manuscript import (
    ChapterApproval,
    ChapterCreate,
    ChapterResponse,
    ChapterUpdate,
    ChatMessageCreate,
    ChatMessageResponse,
    ManuscriptCreate,
    ManuscriptReset,
    ManuscriptResponse,
    ManuscriptUpdate,
    VersionResponse,
    WordCountResponse,
)
from app.services import manuscripts, phases, snapshots, word_count

router = APIRouter()


@router.post("/word-count", response_model=WordCountResponse)
def count_manuscript_words(
    file: UploadFile = File(...),
    current_profile: AuthorProfile = Depends(deps.get_current_profile),
):
    """Word count of an uploaded PDF, estimated from size if the service fails."""
    content = file.file.read()
    try:
        word_count.validate_upload(file.filename, file.content_type, len(content))
    except word_count.UploadValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    result = word_count.count_words_in_pdf(file.filename or "manuscript.pdf", content)
    return result.to_response()


@router.get("/", response_model=list[ManuscriptResponse])
def list_manuscripts(
    db: Session = Depends(deps.get_db),
    current_profile: AuthorProfile = Depends(deps.get_current_profile),
    skip: int = 0,
    limit: int = 100,
):
    """List the caller's manuscripts, most recently updated first."""
    return manuscripts.list_manuscripts(db, current_profile.id, skip=skip, limit=limit)


@router.post("/", response_model=ManuscriptResponse, status_code=status.HTTP_201_CREATED)
def create_manuscript(
    manuscript_in: ManuscriptCreate,
    db: Session = Depends(deps.get_db),
    current_profile: AuthorProfile = Depends(deps.get_current_profile),
):
    """Create a manuscript with its five editing phases (phase 1 active)."""
    manuscript = manuscripts.create_manuscript(
        db,
        current_profile.id,
        title=manuscript_in.title,
        genre=manuscript_in.genre,
        full_text=manuscript_in.full_text,
        word_count=manuscript_in.word_count,
    )
    if not manuscript:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create manuscript",
        )
    return manuscript


@router.get("/{manuscript_id}", response_model=ManuscriptResponse)
def get_manuscript(manuscript: Manuscript = Depends(deps.get_owned_manuscript)):
    """Get a specific manuscript."""
    return manuscript


@router.patch("/{manuscript_id}", response_model=ManuscriptResponse)
def update_manuscript(
    manuscript_update: ManuscriptUpdate,
    db: Session = Depends(deps.get_db),
    manuscript: Manuscript = Depends(deps.get_owned_manuscript),
):
    """Update manuscript metadata."""
    changes = manuscript_update.model_dump(exclude_unset=True)
    if not manuscripts.update_manuscript(db, manuscript, changes):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update manuscript",
        )
    return manuscript


@router.post("/{manuscript_id}/reset", response_model=ManuscriptResponse)
def reset_manuscript(
    reset_in: ManuscriptReset,
    db: Session = Depends(deps.get_db),
    manuscript: Manuscript = Depends(deps.get_owned_manuscript),
):
    """Re-upload: clear chapters, versions and chat, restart at phase 1."""
    if not manuscripts.reset_manuscript(
        db,
        manuscript,
        title=reset_in.title,
        genre=reset_in.genre,
        full_text=reset_in.full_text,
        word_count=reset_in.word_count,
    ):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to reset manuscript",
        )
    db.refresh(manuscript)
    return manuscript


# Chapters


@router.get("/{manuscript_id}/chapters", response_model=list[ChapterResponse])
def list_chapters(
    db: Session = Depends(deps.get_db),
    manuscript: Manuscript = Depends(deps.get_owned_manuscript),
):
    return manuscripts.list_chapters(db, manuscript.id)


@router.post(
    "/{manuscript_id}/chapters",
    response_model=ChapterResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_chapter(
    chapter_in: ChapterCreate,
    db: Session = Depends(deps.get_db),
    manuscript: Manuscript = Depends(deps.get_owned_manuscript),
):
    chapter = manuscripts.create_chapter(
        db,
        manuscript,
        chapter_number=chapter_in.chapter_number,
        title=chapter_in.title,
        content=chapter_in.content,
    )
    if not chapter:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Chapter {chapter_in.chapter_number} already exists",
        )
    return chapter


def _get_chapter_or_404(db: Session, manuscript: Manuscript, chapter_id):
    chapter = manuscripts.get_chapter(db, manuscript.id, chapter_id)
    if not chapter:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Chapter not found"
        )
    return chapter


@router.patch("/{manuscript_id}/chapters/{chapter_id}", response_model=ChapterResponse)
def update_chapter(
    chapter_id: uuid.UUID,
    chapter_update: ChapterUpdate,
    db: Session = Depends(deps.get_db),
    manuscript: Manuscript = Depends(deps.get_owned_manuscript),
):
    chapter = _get_chapter_or_404(db, manuscript, chapter_id)
    changes = chapter_update.model_dump(exclude_unset=True)
    if not manuscripts.update_chapter(db, manuscript, chapter, changes):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update chapter",
        )
    return chapter


@router.post("/{manuscript_id}/chapters/{chapter_id}/approve", response_model=ChapterResponse)
def approve_chapter(
    chapter_id: uuid.UUID,
    approval: ChapterApproval,
    db: Session = Depends(deps.get_db),
    manuscript: Manuscript = Depends(deps.get_owned_manuscript),
):
    """Approve a chapter for editing phase 1, 2 or 3."""
    chapter = _get_chapter_or_404(db, manuscript, chapter_id)
    if not phases.approve_chapter(db, chapter.id, approval.phase_number, approval.content):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to approve chapter",
        )
    db.refresh(chapter)
    return chapter


# Versions


@router.get("/{manuscript_id}/versions", response_model=list[VersionResponse])
def list_versions(
    db: Session = Depends(deps.get_db),
    manuscript: Manuscript = Depends(deps.get_owned_manuscript),
):
    """All snapshots, grouped by phase, newest first within a phase."""
    return snapshots.list_versions(db, manuscript.id)


# Editor chat


@router.get("/{manuscript_id}/chat", response_model=list[ChatMessageResponse])
def list_chat_messages(
    phase_number: int,
    chapter_number: Optional[int] = None,
    db: Session = Depends(deps.get_db),
    manuscript: Manuscript = Depends(deps.get_owned_manuscript),
):
    return manuscripts.list_chat_messages(db, manuscript.id, phase_number, chapter_number)


@router.post(
    "/{manuscript_id}/chat",
    response_model=ChatMessageResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_chat_message(
    message_in: ChatMessageCreate,
    db: Session = Depends(deps.get_db),
    manuscript: Manuscript = Depends(deps.get_owned_manuscript),
):
    entry = manuscripts.add_chat_message(
        db,
        manuscript.id,
        phase_number=message_in.phase_number,
        sender=message_in.sender,
        message=message_in.message,
        chapter_number=message_in.chapter_number,
    )
    if not entry:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save message",
        )
    return entry
