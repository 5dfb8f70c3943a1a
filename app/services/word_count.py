"""
Word-count webhook client with a size-based fallback estimate.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
PHASE_TYPE = "developmental_editing"
BYTES_PER_WORD = 6


class UploadValidationError(ValueError):
    """Rejected upload (wrong type or too large)."""


@dataclass
class WordCountResult:
    word_count: int
    formatted_word_count: str
    extraction_quality: str
    success: bool = True

    def to_response(self) -> dict:
        return {
            "wordCount": self.word_count,
            "formattedWordCount": self.formatted_word_count,
            "extractionQuality": self.extraction_quality,
            "success": self.success,
        }


def validate_upload(filename: Optional[str], content_type: Optional[str], size: int) -> None:
    """PDF only, at most MAX_UPLOAD_BYTES."""
    is_pdf = (filename or "").lower().endswith(".pdf") or content_type == PDF_CONTENT_TYPE
    if not is_pdf:
        raise UploadValidationError("Only PDF files are accepted.")
    if size > settings.MAX_UPLOAD_BYTES:
        raise UploadValidationError("File size must be less than 10MB.")


def estimate_word_count(size: int) -> WordCountResult:
    words = math.floor(size / BYTES_PER_WORD + 0.5)
    return WordCountResult(
        word_count=words,
        formatted_word_count=f"{words:,} (estimated)",
        extraction_quality="estimated",
        success=False,
    )


def count_words_in_pdf(
    filename: str,
    content: bytes,
    transport: Optional[httpx.BaseTransport] = None,
) -> WordCountResult:
    """Ask the webhook for an exact count; estimate from size on any failure."""
    try:
        with httpx.Client(transport=transport, timeout=settings.WORD_COUNT_TIMEOUT) as client:
            response = client.post(
                settings.WORD_COUNT_WEBHOOK_URL,
                files={"manuscript": (filename, content, PDF_CONTENT_TYPE)},
                data={"phaseType": PHASE_TYPE},
            )
            response.raise_for_status()
            payload = response.json()
        result = WordCountResult(
            word_count=int(payload["wordCount"]),
            formatted_word_count=str(payload.get("formattedWordCount") or f"{int(payload['wordCount']):,}"),
            extraction_quality=str(payload.get("extractionQuality") or "unknown"),
        )
    except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
        logger.warning("Word count service unavailable, estimating from size: %s", exc)
        return estimate_word_count(len(content))

    logger.info("Word count for %s: %s (%s)", filename, result.word_count, result.extraction_quality)
    return result
