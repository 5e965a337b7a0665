"""
Dedup Key Module

Derives stable identities for text segments so that content rediscovered
after a page re-scan maps to the same work item.
"""

# Standard library
import hashlib
import re

_WHITESPACE_RE = re.compile(r"\s+")

SEGMENT_KEY_PREFIX = "seg_"
_DIGEST_LENGTH = 16


def normalize_for_key(text: str) -> str:
    """
    Normalizes text before hashing.

    Leading/trailing whitespace is dropped and internal whitespace runs are
    collapsed, so layout-only differences do not create new identities.

    Args:
        text: Raw segment text.

    Returns:
        Normalized text.
    """
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def segment_key(text: str) -> str:
    """
    Returns the dedup identity of a text segment.

    The key depends only on the normalized content, never on time or
    randomness, so it is stable across rediscoveries and processes.

    Args:
        text: Segment text.

    Returns:
        Key like "seg_1f0c3a9d2b7e4c51".
    """
    digest = hashlib.sha1(normalize_for_key(text).encode("utf-8")).hexdigest()
    return f"{SEGMENT_KEY_PREFIX}{digest[:_DIGEST_LENGTH]}"
