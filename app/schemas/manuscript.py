from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ManuscriptCreate(BaseModel):
    """Schema for a newly uploaded manuscript"""

    title: str = Field(..., min_length=1, max_length=500)
    genre: str | None = Field(None, max_length=100)
    full_text: str | None = None
    word_count: int | None = Field(None, ge=0)


class ManuscriptUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=500)
    genre: str | None = Field(None, max_length=100)
    has_epilogue: bool | None = None
    status: str | None = Field(None, pattern="^(active|archived)$")


class ManuscriptReset(BaseModel):
    """Re-upload: replaces the text and starts the workflow over"""

    title: str | None = Field(None, min_length=1, max_length=500)
    genre: str | None = Field(None, max_length=100)
    full_text: str | None = None
    word_count: int | None = Field(None, ge=0)


class ManuscriptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    author_id: UUID
    title: str
    genre: str | None = None
    current_word_count: int | None = 0
    total_chapters: int | None = 0
    has_prologue: bool | None = False
    has_epilogue: bool | None = False
    status: str
    current_phase_number: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ChapterCreate(BaseModel):
    chapter_number: int = Field(..., ge=0)
    title: str = Field("", max_length=500)
    content: str = ""


class ChapterUpdate(BaseModel):
    title: str | None = Field(None, max_length=500)
    content: str | None = None
    status: str | None = Field(None, max_length=50)


class ChapterApproval(BaseModel):
    """Approve a chapter for an editing phase, optionally with edited content"""

    phase_number: int = Field(..., ge=1, le=3)
    content: str | None = None


class ChapterResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    manuscript_id: UUID
    chapter_number: int
    title: str | None = None
    content: str | None = None
    word_count: int | None = 0
    status: str | None = None
    phase_1_approved_at: datetime | None = None
    phase_2_approved_at: datetime | None = None
    phase_3_approved_at: datetime | None = None


class VersionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    manuscript_id: UUID
    phase_number: int
    version_type: str
    content: str
    word_count: int | None = 0
    file_url: str | None = None
    created_by_editor: str | None = None
    notes: str | None = None
    created_at: datetime | None = None


class ChatMessageCreate(BaseModel):
    phase_number: int = Field(..., ge=1, le=5)
    chapter_number: int | None = Field(None, ge=0)
    sender: str = Field(..., pattern="^(author|editor)$")
    message: str = Field(..., min_length=1)


class ChatMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    manuscript_id: UUID
    phase_number: int
    chapter_number: int | None = None
    sender: str
    message: str
    created_at: datetime | None = None


class WordCountResponse(BaseModel):
    wordCount: int
    formattedWordCount: str
    extractionQuality: str
    success: bool
