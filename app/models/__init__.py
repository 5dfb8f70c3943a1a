"""
Database models for AuthorsLab API.
"""

from app.models.author_profile import ADMIN_ROLES, AuthorProfile
from app.models.beta_feedback import BetaFeedback
from app.models.chapter import APPROVAL_PHASES, Chapter, approval_column
from app.models.editing_phase import EDITOR_CONFIG, PHASE_NUMBERS, EditingPhase, PhaseStatus
from app.models.editor_chat_message import EditorChatMessage
from app.models.manuscript import Manuscript, ManuscriptStatus
from app.models.manuscript_version import APPROVED_SNAPSHOT, ManuscriptVersion
from app.models.publishing_progress import PublishingProgress
from app.models.user_purchase import PackageType, UserPurchase

__all__ = [
    "AuthorProfile",
    "ADMIN_ROLES",
    "Manuscript",
    "ManuscriptStatus",
    "Chapter",
    "APPROVAL_PHASES",
    "approval_column",
    "EditingPhase",
    "PhaseStatus",
    "PHASE_NUMBERS",
    "EDITOR_CONFIG",
    "ManuscriptVersion",
    "APPROVED_SNAPSHOT",
    "PublishingProgress",
    "UserPurchase",
    "PackageType",
    "BetaFeedback",
    "EditorChatMessage",
]
