"""
Segment Chunker Module

Decides which page paragraphs are worth translating and splits oversized
paragraphs into ordered sub-segments along sentence boundaries.

Translating at paragraph granularity keeps the request count low; the
fixed-length fallback guarantees that no request exceeds the size ceiling,
even for a single very long sentence without punctuation.
"""

# Standard library
import logging
import re
from typing import Dict, List, Optional

# Local application
from page_translation.schemas import (
    DEFAULT_MAX_PARAGRAPH_LENGTH,
    DEFAULT_MIN_PARAGRAPH_LENGTH,
    SchedulerConfig,
)

# Configure logging
logger = logging.getLogger(__name__)

# Minimum alphanumeric characters left after removing punctuation
MIN_MEANINGFUL_CHARS = 5

_WHITESPACE_RE = re.compile(r"\s+")
_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_PURE_NUMERIC_RE = re.compile(r"\d+[\d\s\-.]*")
_PURE_SYMBOL_RE = re.compile(r"[^\w\s]+")
# Split after sentence-terminal punctuation, keeping it with its sentence
_SENTENCE_BOUNDARY_RE = re.compile(r"(?<=[.!?])\s+")
# Sentence-level estimate used for request-savings statistics
_SENTENCE_ESTIMATE_RE = re.compile(r"[.!?]+")


def normalize_paragraph_text(text: str) -> str:
    """
    Collapses whitespace runs into single spaces and trims the result.

    Args:
        text: Raw text content of a page element.

    Returns:
        Normalized paragraph text.
    """
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def should_translate(text: str, min_length: int = DEFAULT_MIN_PARAGRAPH_LENGTH) -> bool:
    """
    Checks whether a paragraph is worth a translation request.

    Rejects text shorter than `min_length`, text with fewer than five
    characters left once punctuation is removed, pure numbers (digits,
    spaces, separators) and pure symbols.

    Args:
        text: Paragraph text.
        min_length: Minimum paragraph length in characters.

    Returns:
        True if the text should be translated.
    """
    if not text or len(text) < min_length:
        return False

    meaningful = _PUNCTUATION_RE.sub("", text).strip()
    if len(meaningful) < MIN_MEANINGFUL_CHARS:
        return False

    stripped = text.strip()
    if _PURE_NUMERIC_RE.fullmatch(stripped):
        return False
    if _PURE_SYMBOL_RE.fullmatch(stripped):
        return False

    return True


def split_into_sentences(text: str) -> List[str]:
    """Splits text after `.`, `!` or `?` followed by whitespace."""
    return [s.strip() for s in _SENTENCE_BOUNDARY_RE.split(text) if s.strip()]


def split_by_length(text: str, max_length: int) -> List[str]:
    """
    Cuts text into fixed windows of `max_length` characters.

    Args:
        text: Text to cut.
        max_length: Window size.

    Returns:
        Trimmed, non-empty windows in source order.
    """
    segments: List[str] = []
    for start in range(0, len(text), max_length):
        window = text[start:start + max_length].strip()
        if window:
            segments.append(window)
    return segments


def chunk_text(text: str, max_length: int = DEFAULT_MAX_PARAGRAPH_LENGTH) -> List[str]:
    """
    Splits a paragraph into request-sized segments.

    Text within `max_length` is returned unchanged as a single segment.
    Longer text is whitespace-normalized, then split into sentences which
    are greedily joined (with a single space) while the running segment
    stays within `max_length`. A sentence that alone exceeds the limit is
    cut into fixed-length windows.

    Args:
        text: Paragraph text.
        max_length: Maximum segment length in characters.

    Returns:
        Ordered segments; joining them with spaces reproduces the
        whitespace-normalized source.

    Raises:
        ValueError: If max_length is not positive.
    """
    if max_length <= 0:
        raise ValueError(f"max_length must be positive, got {max_length}")

    if len(text) <= max_length:
        return [text]

    text = normalize_paragraph_text(text)
    segments: List[str] = []
    current = ""

    for sentence in split_into_sentences(text):
        if len(sentence) > max_length:
            # Single sentence over the limit: flush and force-cut
            if current:
                segments.append(current)
                current = ""
            segments.extend(split_by_length(sentence, max_length))
            continue

        candidate = f"{current} {sentence}" if current else sentence
        if len(candidate) > max_length:
            segments.append(current)
            current = sentence
        else:
            current = candidate

    if current:
        segments.append(current)

    result = [segment.strip() for segment in segments if segment.strip()]
    logger.debug(f"Chunked {len(text)} chars into {len(result)} segments")
    return result


class ParagraphChunker:
    """
    Paragraph-level chunking policy bound to a session configuration.

    Also keeps statistics on how many requests paragraph-level grouping
    saves compared with sentence-by-sentence translation.
    """

    def __init__(self, config: Optional[SchedulerConfig] = None) -> None:
        self.config = config or SchedulerConfig()
        self.paragraphs_processed = 0
        self.segments_created = 0
        self.requests_saved = 0

    def should_translate(self, text: str) -> bool:
        return should_translate(text, self.config.min_paragraph_length)

    def chunk(self, text: str) -> List[str]:
        return chunk_text(text, self.config.max_paragraph_length)

    def plan(self, text: str) -> List[str]:
        """
        Turns raw paragraph text into the segments to enqueue.

        Args:
            text: Raw paragraph text from the extraction layer.

        Returns:
            Ordered segments, or an empty list if the paragraph is skipped.
        """
        normalized = normalize_paragraph_text(text)
        if not self.should_translate(normalized):
            logger.debug(f"Skipping paragraph: {normalized[:50]!r}")
            return []

        segments = self.chunk(normalized)

        self.paragraphs_processed += 1
        self.segments_created += len(segments)
        estimated_sentence_requests = len(_SENTENCE_ESTIMATE_RE.split(normalized))
        self.requests_saved += max(0, estimated_sentence_requests - len(segments))

        return segments

    def get_stats(self) -> Dict[str, float]:
        """
        Returns chunking statistics.

        Returns:
            Dict with counters, efficiency_percentage and
            average_segments_per_paragraph.
        """
        efficiency = 0
        if self.requests_saved > 0:
            efficiency = round(
                self.requests_saved / (self.segments_created + self.requests_saved) * 100
            )

        average = 0.0
        if self.paragraphs_processed > 0:
            average = round(self.segments_created / self.paragraphs_processed, 2)

        return {
            "paragraphs_processed": self.paragraphs_processed,
            "segments_created": self.segments_created,
            "requests_saved": self.requests_saved,
            "efficiency_percentage": efficiency,
            "average_segments_per_paragraph": average,
        }

    def reset_stats(self) -> None:
        self.paragraphs_processed = 0
        self.segments_created = 0
        self.requests_saved = 0
