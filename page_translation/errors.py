"""Error types raised by the page translation pipeline."""

from __future__ import annotations


class TranslationError(RuntimeError):
    """Raised when a single translation attempt fails (retriable)."""


class TranslationConfigError(TranslationError):
    """Raised when translation cannot work until configuration is fixed.

    Retrying does not help (e.g. missing API key), so the scheduler never
    spends a retry on it.
    """


class InvalidSegmentError(ValueError):
    """Raised when text is empty or otherwise unusable as a work item."""
