"""Progress reporting derived from scheduler state."""

# Standard library
import math
from typing import Optional

# Local application
from page_translation.schemas import ProgressSnapshot, SchedulerState


def completion_percentage(current: int, total: int) -> int:
    """Rounds current/total to a whole percentage, halves rounding up."""
    if total <= 0:
        return 0
    return int(math.floor(current / total * 100 + 0.5))


def build_progress(
    processed_count: int,
    queue_length: int,
    state: SchedulerState,
    succeeded: int = 0,
    failed: int = 0,
    current_segment_id: Optional[str] = None,
) -> ProgressSnapshot:
    """
    Builds a progress snapshot.

    "Processed" counts both succeeded and abandoned items, so progress keeps
    advancing while individual items fail.

    Args:
        processed_count: Items that left the pipeline.
        queue_length: Items still pending.
        state: Current scheduler state.
        succeeded: Items translated successfully.
        failed: Items abandoned after exhausting retries.
        current_segment_id: Identity of the item being dispatched, if any.

    Returns:
        ProgressSnapshot for observers.
    """
    total = processed_count + queue_length
    return ProgressSnapshot(
        current=processed_count,
        total=total,
        percentage=completion_percentage(processed_count, total),
        is_active=state == SchedulerState.DRAINING,
        queue_length=queue_length,
        succeeded=succeeded,
        failed=failed,
        current_segment_id=current_segment_id,
    )
