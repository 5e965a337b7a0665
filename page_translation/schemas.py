"""
Page Translation Schemas

Pydantic models shared by the chunker, the rate-limited scheduler, the page
session layer and the HTTP router.
"""

from __future__ import annotations

# Standard library
import time
from enum import Enum
from typing import Any, Optional

# Third-party
from pydantic import BaseModel, Field, model_validator

# Local application
from page_translation.dedup import segment_key
from page_translation.errors import InvalidSegmentError

# Defaults follow the Gemini free-tier quotas.
DEFAULT_RPM_LIMIT = 15
DEFAULT_TPM_LIMIT = 250_000
DEFAULT_RPD_LIMIT = 1000
DEFAULT_MAX_PARAGRAPH_LENGTH = 1500
DEFAULT_MIN_PARAGRAPH_LENGTH = 10
DEFAULT_MAX_RETRIES = 2
DEFAULT_REQUEST_TIMEOUT_SEC = 30.0
DEFAULT_TARGET_LANGUAGE = "zh-TW"
DEFAULT_SESSION_IDLE_TIMEOUT_SEC = 1800.0


class SchedulerState(str, Enum):
    """Lifecycle states of a scheduler instance."""

    IDLE = "idle"
    DRAINING = "draining"
    PAUSED = "paused"


class SchedulerConfig(BaseModel):
    """Construction-time configuration of a page translation session."""

    rpm_limit: int = Field(default=DEFAULT_RPM_LIMIT, gt=0)
    tpm_limit: int = Field(default=DEFAULT_TPM_LIMIT, gt=0)
    rpd_limit: int = Field(default=DEFAULT_RPD_LIMIT, gt=0)
    max_paragraph_length: int = Field(default=DEFAULT_MAX_PARAGRAPH_LENGTH, gt=0)
    min_paragraph_length: int = Field(default=DEFAULT_MIN_PARAGRAPH_LENGTH, ge=0)
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    request_timeout_seconds: float = Field(default=DEFAULT_REQUEST_TIMEOUT_SEC, gt=0)
    target_language: str = Field(default=DEFAULT_TARGET_LANGUAGE, min_length=1)


class WorkItem(BaseModel):
    """
    One schedulable unit of text awaiting translation.

    `id` is derived from the normalized text, so the same content always
    maps to the same item. `text` and `id` cannot be reassigned.
    """

    id: str = Field(default="", frozen=True)
    text: str = Field(..., frozen=True)
    priority: int = 0
    enqueued_at: float = Field(default_factory=time.time)
    retry_count: int = Field(default=0, ge=0)
    block_id: Optional[str] = None
    segment_index: int = 0

    @model_validator(mode="before")
    @classmethod
    def _derive_identity(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        text = data.get("text")
        if not isinstance(text, str) or not text.strip():
            raise InvalidSegmentError("Work item text must not be empty")
        return {**data, "id": segment_key(text)}

    @classmethod
    def create(cls, text: str, priority: int = 0, **extra: Any) -> "WorkItem":
        """
        Builds a work item, raising `InvalidSegmentError` directly.

        Pydantic wraps validator errors in `ValidationError`; callers of
        `enqueue`/chunking expect the domain error instead.

        Args:
            text: Text to translate.
            priority: Dispatch rank, higher first.
            **extra: Other WorkItem fields (block_id, segment_index, ...).

        Returns:
            The new WorkItem.

        Raises:
            InvalidSegmentError: If the text is empty or whitespace only.
        """
        if not isinstance(text, str) or not text.strip():
            raise InvalidSegmentError("Work item text must not be empty")
        return cls(text=text, priority=priority, **extra)


class DailyUsage(BaseModel):
    """Request/token counters for the current calendar day."""

    requests: int = 0
    tokens: int = 0
    day_key: str


class TranslationResult(BaseModel):
    """Result returned by a translation provider for one request."""

    success: bool
    translated_text: str = ""
    tokens_used: int = 0
    provider: str = ""
    model: Optional[str] = None
    error: Optional[str] = None


class ProgressSnapshot(BaseModel):
    """Aggregate progress derived from scheduler state."""

    current: int
    total: int
    percentage: int
    is_active: bool
    queue_length: int = 0
    succeeded: int = 0
    failed: int = 0
    current_segment_id: Optional[str] = None


class SchedulerStatus(BaseModel):
    """Read-only snapshot returned by `RateLimitedScheduler.get_status()`."""

    queue_length: int
    processed_count: int
    succeeded_count: int
    failed_count: int
    state: SchedulerState
    daily_usage: DailyUsage
    can_dispatch_now: bool
    wait_seconds: float
    requests_last_minute: int
    tokens_last_minute: int
    current_segment_id: Optional[str] = None


class RenderedTranslation(BaseModel):
    """A translated segment as handed to the renderer."""

    segment_id: str
    original_text: str
    translated_text: str
    provider: str
    tokens_used: int
    timestamp: float
    block_id: Optional[str] = None


# --- API models ---


class TextBlock(BaseModel):
    """A block of page text discovered by the content extraction layer."""

    block_id: str = Field(..., min_length=1)
    text: str
    position: int = Field(default=0, ge=0)
    is_visible: bool = False
    block_type: str = "paragraph"
    priority: Optional[int] = None


class SessionCreateRequest(BaseModel):
    """Optional per-session overrides of the environment configuration."""

    rpm_limit: Optional[int] = Field(default=None, gt=0)
    tpm_limit: Optional[int] = Field(default=None, gt=0)
    rpd_limit: Optional[int] = Field(default=None, gt=0)
    max_paragraph_length: Optional[int] = Field(default=None, gt=0)
    min_paragraph_length: Optional[int] = Field(default=None, ge=0)
    target_language: Optional[str] = None


class SessionCreated(BaseModel):
    """Response model for session creation."""

    session_id: str
    config: SchedulerConfig


class BlockSubmitRequest(BaseModel):
    """Request model for submitting discovered page blocks."""

    blocks: list[TextBlock] = Field(default_factory=list)
    auto_start: bool = True


class SubmitResult(BaseModel):
    """Outcome of submitting blocks to a session."""

    accepted: int = 0
    skipped: int = 0
    enqueued_segments: int = 0
    duplicate_segments: int = 0
    segment_ids: list[str] = Field(default_factory=list)


class BlockTranslation(BaseModel):
    """Reassembled translation of one source block."""

    block_id: str
    original_text: str
    translated_text: Optional[str] = None
    completed_segments: int
    total_segments: int


class SessionResults(BaseModel):
    """Response model for translated results of a session."""

    segments: list[RenderedTranslation] = Field(default_factory=list)
    blocks: list[BlockTranslation] = Field(default_factory=list)
