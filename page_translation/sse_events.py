"""
SSE Event Types for Page Translation Streaming

Defines event types and payloads pushed to subscribers of a page session.
"""

# Standard library
import json
from enum import Enum
from typing import Any, Dict, Optional

# Third-party
from pydantic import BaseModel


class SSEEventType(str, Enum):
    """SSE event types for page translation sessions."""

    PROGRESS = "progress"
    RESULT = "result"
    ERROR = "error"
    COMPLETE = "complete"
    CLOSED = "closed"


class ErrorData(BaseModel):
    """Data for error event."""
    message: str
    segment_id: Optional[str] = None
    retry_count: int = 0


class CompleteData(BaseModel):
    """Data for complete event."""
    processed: int
    succeeded: int
    failed: int


def format_sse_event(event_type: SSEEventType, data: Any) -> Dict[str, str]:
    """
    Formats an SSE event for streaming.

    Args:
        event_type: The type of SSE event.
        data: The event data (Pydantic model or dict).

    Returns:
        Dict with 'event' and 'data' keys for EventSourceResponse.
    """
    if hasattr(data, "model_dump"):
        json_data = json.dumps(data.model_dump(mode="json"), ensure_ascii=False)
    elif isinstance(data, dict):
        json_data = json.dumps(data, ensure_ascii=False)
    else:
        json_data = json.dumps({"value": data}, ensure_ascii=False)

    return {
        "event": event_type.value,
        "data": json_data,
    }
