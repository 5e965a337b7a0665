"""
Page Translation Module

Rate-limited, deduplicated translation of web page paragraphs through a
single external API quota.
"""

# Schemas - always safe to import
from page_translation.schemas import (
    SchedulerConfig,
    SchedulerState,
    SchedulerStatus,
    ProgressSnapshot,
    TextBlock,
    TranslationResult,
    WorkItem,
)
from page_translation.errors import (
    InvalidSegmentError,
    TranslationConfigError,
    TranslationError,
)

# Core queueing
from page_translation.scheduler import RateLimitedScheduler, SchedulerHooks
from page_translation.session import PageTranslationSession, SessionManager

__all__ = [
    # Schemas
    "SchedulerConfig",
    "SchedulerState",
    "SchedulerStatus",
    "ProgressSnapshot",
    "TextBlock",
    "TranslationResult",
    "WorkItem",
    # Errors
    "InvalidSegmentError",
    "TranslationConfigError",
    "TranslationError",
    # Scheduling
    "RateLimitedScheduler",
    "SchedulerHooks",
    "PageTranslationSession",
    "SessionManager",
]
