"""Dispatch priority of discovered page blocks."""

# Local application
from page_translation.schemas import TextBlock

PRIORITY_WEIGHTS: dict[str, int] = {
    "in_viewport": 100,
    "title": 80,
    "important": 60,
    "document_order": 1,
}

# Blocks beyond this position get no document-order bonus
MAX_ORDER_POSITION = 1000
IMPORTANT_WORD_COUNT = 20

TITLE_BLOCK_TYPES = frozenset({"title", "h1", "h2", "h3", "h4", "h5", "h6"})


def is_title(block: TextBlock) -> bool:
    return block.block_type.lower() in TITLE_BLOCK_TYPES


def is_important(block: TextBlock) -> bool:
    """Titles, visible blocks and blocks longer than 20 words are important."""
    if is_title(block) or block.is_visible:
        return True
    return len(block.text.split()) > IMPORTANT_WORD_COUNT


def calculate_priority(block: TextBlock) -> int:
    """
    Scores a block; higher scores are dispatched first.

    Visible content outranks titles, which outrank other important blocks.
    Earlier blocks in document order get a small bonus.

    Args:
        block: Discovered page block.

    Returns:
        Integer priority.
    """
    if block.priority is not None:
        return block.priority

    priority = 0
    if block.is_visible:
        priority += PRIORITY_WEIGHTS["in_viewport"]
    if is_title(block):
        priority += PRIORITY_WEIGHTS["title"]
    if is_important(block):
        priority += PRIORITY_WEIGHTS["important"]

    order_bonus = max(0, MAX_ORDER_POSITION - block.position)
    priority += PRIORITY_WEIGHTS["document_order"] * order_bonus
    return priority
