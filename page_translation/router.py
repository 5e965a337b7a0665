"""
Page Translation Router

API endpoints for page translation sessions: block submission, queue
control, status/progress polling, collected results and an SSE event stream.
"""

# Standard library
import logging
from typing import Optional

# Third-party
from fastapi import APIRouter, Depends, Request
from sse_starlette.sse import EventSourceResponse

# Local application
from core.errors import AppError, ErrorCode
from page_translation.config import load_scheduler_config
from page_translation.schemas import (
    BlockSubmitRequest,
    ProgressSnapshot,
    SchedulerStatus,
    SessionCreated,
    SessionCreateRequest,
    SessionResults,
    SubmitResult,
)
from page_translation.session import PageTranslationSession, SessionManager
from page_translation.translator import GeminiTranslator

# Configure logging
logger = logging.getLogger(__name__)

router = APIRouter()


def get_session_manager(request: Request) -> SessionManager:
    """Returns the session registry attached at startup."""
    manager = getattr(request.app.state, "session_manager", None)
    if manager is None:
        raise AppError(
            code=ErrorCode.INTERNAL_ERROR,
            message="Session manager not initialized",
            status_code=500,
        )
    return manager


def _require_session(manager: SessionManager, session_id: str) -> PageTranslationSession:
    session = manager.get(session_id)
    if session is None:
        raise AppError.not_found("Translation session", session_id)
    return session


@router.post("/sessions", response_model=SessionCreated, status_code=201)
async def create_session(
    data: Optional[SessionCreateRequest] = None,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionCreated:
    """
    Creates a page translation session.

    Args:
        data: Optional overrides of the environment defaults.
        manager: Session registry (injected).

    Returns:
        SessionCreated with the effective config.
    """
    config = load_scheduler_config(data)
    session = manager.create(config)
    return SessionCreated(session_id=session.session_id, config=config)


@router.post("/sessions/{session_id}/blocks", response_model=SubmitResult)
async def submit_blocks(
    session_id: str,
    data: BlockSubmitRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> SubmitResult:
    """
    Submits discovered page blocks for translation.

    Raises:
        AppError: 404 for an unknown session.
        InvalidSegmentError: For unusable segment text (rendered as 400).
    """
    session = _require_session(manager, session_id)
    result = session.submit_blocks(data.blocks)

    if data.auto_start:
        session.scheduler.start()
    return result


@router.post("/sessions/{session_id}/start", response_model=SchedulerStatus)
async def start_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> SchedulerStatus:
    session = _require_session(manager, session_id)
    session.scheduler.start()
    return session.scheduler.get_status()


@router.post("/sessions/{session_id}/pause", response_model=SchedulerStatus)
async def pause_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> SchedulerStatus:
    session = _require_session(manager, session_id)
    session.scheduler.pause()
    return session.scheduler.get_status()


@router.post("/sessions/{session_id}/resume", response_model=SchedulerStatus)
async def resume_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> SchedulerStatus:
    session = _require_session(manager, session_id)
    session.scheduler.resume()
    return session.scheduler.get_status()


@router.post("/sessions/{session_id}/clear", response_model=SchedulerStatus)
async def clear_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> SchedulerStatus:
    """Drops the queue, processed identities and collected results."""
    session = _require_session(manager, session_id)
    session.clear()
    return session.scheduler.get_status()


@router.get("/sessions/{session_id}/status", response_model=SchedulerStatus)
async def get_session_status(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> SchedulerStatus:
    return _require_session(manager, session_id).scheduler.get_status()


@router.get("/sessions/{session_id}/progress", response_model=ProgressSnapshot)
async def get_session_progress(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> ProgressSnapshot:
    return _require_session(manager, session_id).scheduler.get_progress()


@router.get("/sessions/{session_id}/results", response_model=SessionResults)
async def get_session_results(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> SessionResults:
    """Returns rendered segments and per-block assembled translations."""
    return _require_session(manager, session_id).results()


@router.get("/sessions/{session_id}/stats")
async def get_chunking_stats(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> dict:
    """Returns chunking statistics (requests saved by paragraph batching)."""
    return _require_session(manager, session_id).chunker.get_stats()


@router.get("/sessions/{session_id}/events")
async def stream_session_events(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> EventSourceResponse:
    """
    Streams progress/result/error/complete events over SSE.

    The stream ends when the session is deleted.
    """
    session = _require_session(manager, session_id)
    logger.info(f"SSE subscriber attached to session {session_id}")
    return EventSourceResponse(session.event_stream())


@router.delete("/sessions/{session_id}", status_code=204)
async def delete_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
) -> None:
    if not manager.remove(session_id):
        raise AppError.not_found("Translation session", session_id)


@router.post("/validate-key")
async def validate_api_key() -> dict:
    """
    Checks the translation API with the configured key.

    Returns:
        {"valid": bool}
    """
    valid = await GeminiTranslator().validate_api_key()
    return {"valid": valid}
