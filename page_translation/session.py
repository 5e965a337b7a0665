"""
Page Translation Session

Ties the chunking policy, the rate-limited scheduler and result collection
together for one page. Each page session owns exactly one scheduler; the
SessionManager keeps sessions per application instance.
"""

# Standard library
import asyncio
import logging
import time
import uuid
from typing import AsyncIterator, Callable, Dict, List, Optional

# Local application
from page_translation.priority import calculate_priority
from page_translation.scheduler import Clock, RateLimitedScheduler, SchedulerHooks, Sleep
from page_translation.schemas import (
    DEFAULT_SESSION_IDLE_TIMEOUT_SEC,
    BlockTranslation,
    ProgressSnapshot,
    RenderedTranslation,
    SchedulerConfig,
    SchedulerState,
    SessionResults,
    SubmitResult,
    TextBlock,
    TranslationResult,
    WorkItem,
)
from page_translation.segment_chunker import ParagraphChunker
from page_translation.sse_events import CompleteData, ErrorData, SSEEventType, format_sse_event
from page_translation.translator import GeminiTranslator, TranslationProvider

# Configure logging
logger = logging.getLogger(__name__)

# Translated segments of one block are joined with this separator
SEGMENT_SEPARATOR = " "

TranslatorFactory = Callable[[SchedulerConfig], TranslationProvider]


def default_translator_factory(config: SchedulerConfig) -> TranslationProvider:
    return GeminiTranslator(target_language=config.target_language)


class PageTranslationSession:
    """Translation state of one page: blocks, queue and rendered results."""

    def __init__(
        self,
        session_id: str,
        config: SchedulerConfig,
        translator: TranslationProvider,
        clock: Clock = time.time,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.session_id = session_id
        self.config = config
        self.chunker = ParagraphChunker(config)
        self._clock = clock
        self.scheduler = RateLimitedScheduler(
            translator,
            config=config,
            hooks=SchedulerHooks(
                on_progress=self._on_progress,
                on_complete=self._on_complete,
                on_error=self._on_error,
                on_result=self.render,
            ),
            clock=clock,
            sleep=sleep,
        )

        self._blocks: Dict[str, TextBlock] = {}
        self._block_segments: Dict[str, List[str]] = {}
        self._results: Dict[str, RenderedTranslation] = {}
        self._failures: Dict[str, str] = {}
        self._subscribers: List["asyncio.Queue[Dict[str, str]]"] = []

    # --- block intake ---

    def submit_blocks(self, blocks: List[TextBlock]) -> SubmitResult:
        """
        Chunks discovered blocks and enqueues their segments.

        Blocks rejected by the chunking policy are counted as skipped.
        Segments whose identity the scheduler already knows are linked to
        the block without a second request.

        Args:
            blocks: Blocks from the content extraction layer.

        Returns:
            SubmitResult with counts and the segment identities.

        Raises:
            InvalidSegmentError: If a segment is structurally invalid.
        """
        outcome = SubmitResult()

        for block in blocks:
            segments = self.chunker.plan(block.text)
            if not segments:
                outcome.skipped += 1
                continue

            priority = calculate_priority(block)
            keys: List[str] = []
            for index, text in enumerate(segments):
                item = WorkItem.create(
                    text,
                    priority=priority,
                    block_id=block.block_id,
                    segment_index=index,
                )
                keys.append(item.id)
                if self.scheduler.enqueue(item):
                    outcome.enqueued_segments += 1
                else:
                    outcome.duplicate_segments += 1

            self._blocks[block.block_id] = block
            self._block_segments[block.block_id] = keys
            outcome.accepted += 1
            outcome.segment_ids.extend(keys)

        logger.info(
            f"[{self.session_id}] Submitted {len(blocks)} blocks: "
            f"{outcome.accepted} accepted, {outcome.skipped} skipped, "
            f"{outcome.enqueued_segments} segments queued"
        )
        return outcome

    # --- renderer collaborator ---

    def _is_known_segment(self, segment_id: str) -> bool:
        return any(segment_id in keys for keys in self._block_segments.values())

    def render(self, item: WorkItem, result: TranslationResult) -> None:
        """Stores a translated segment and publishes it to subscribers."""
        if not self._is_known_segment(item.id):
            logger.info(f"[{self.session_id}] Ignoring result for untracked segment {item.id}")
            return

        rendered = RenderedTranslation(
            segment_id=item.id,
            original_text=item.text,
            translated_text=result.translated_text,
            provider=result.provider,
            tokens_used=result.tokens_used,
            timestamp=self._clock(),
            block_id=item.block_id,
        )
        self._results[item.id] = rendered
        self._publish(format_sse_event(SSEEventType.RESULT, rendered))

    def assembled_translation(self, block_id: str) -> Optional[str]:
        """
        Joins the translated segments of a block in source order.

        Returns:
            The block translation, or None while segments are outstanding.
        """
        keys = self._block_segments.get(block_id)
        if not keys or any(key not in self._results for key in keys):
            return None
        return SEGMENT_SEPARATOR.join(self._results[key].translated_text for key in keys)

    def results(self) -> SessionResults:
        blocks = []
        for block_id, keys in self._block_segments.items():
            blocks.append(
                BlockTranslation(
                    block_id=block_id,
                    original_text=self._blocks[block_id].text,
                    translated_text=self.assembled_translation(block_id),
                    completed_segments=sum(1 for key in keys if key in self._results),
                    total_segments=len(keys),
                )
            )
        return SessionResults(segments=list(self._results.values()), blocks=blocks)

    def failures(self) -> Dict[str, str]:
        return dict(self._failures)

    # --- scheduler callbacks ---

    def _on_progress(self, snapshot: ProgressSnapshot) -> None:
        self._publish(format_sse_event(SSEEventType.PROGRESS, snapshot))

    def _on_complete(self) -> None:
        status = self.scheduler.get_status()
        logger.info(
            f"[{self.session_id}] Translation complete: "
            f"{status.succeeded_count} succeeded, {status.failed_count} failed"
        )
        self._publish(
            format_sse_event(
                SSEEventType.COMPLETE,
                CompleteData(
                    processed=status.processed_count,
                    succeeded=status.succeeded_count,
                    failed=status.failed_count,
                ),
            )
        )

    def _on_error(self, error: BaseException, item: WorkItem) -> None:
        self._failures[item.id] = str(error)
        self._publish(
            format_sse_event(
                SSEEventType.ERROR,
                ErrorData(message=str(error), segment_id=item.id, retry_count=item.retry_count),
            )
        )

    # --- control ---

    def clear(self) -> None:
        """Clears the queue and every collected result of this page."""
        self.scheduler.clear()
        self._blocks.clear()
        self._block_segments.clear()
        self._results.clear()
        self._failures.clear()
        self.chunker.reset_stats()

    def close(self) -> None:
        self.scheduler.pause()
        self.clear()
        self._publish(format_sse_event(SSEEventType.CLOSED, {"session_id": self.session_id}))

    # --- event fan-out ---

    @property
    def is_idle(self) -> bool:
        """No dispatch loop is draining and nobody is listening for events."""
        return self.scheduler.state != SchedulerState.DRAINING and not self._subscribers

    def subscribe(self) -> "asyncio.Queue[Dict[str, str]]":
        queue: "asyncio.Queue[Dict[str, str]]" = asyncio.Queue()
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: "asyncio.Queue[Dict[str, str]]") -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def _publish(self, event: Dict[str, str]) -> None:
        for queue in self._subscribers:
            queue.put_nowait(event)

    async def event_stream(self) -> AsyncIterator[Dict[str, str]]:
        """
        Yields session events until the session is closed.

        The first event is the current progress, so late subscribers start
        from a consistent view.
        """
        queue = self.subscribe()
        try:
            yield format_sse_event(SSEEventType.PROGRESS, self.scheduler.get_progress())
            while True:
                event = await queue.get()
                yield event
                if event["event"] == SSEEventType.CLOSED.value:
                    return
        finally:
            self.unsubscribe(queue)


class SessionManager:
    """
    Registry of page sessions for one application instance.

    Sessions end with an explicit remove() or, once untouched for
    `idle_timeout_seconds`, on the next sweep. Sweeps run lazily on create()
    and skip sessions that are draining or have live event subscribers.
    """

    def __init__(
        self,
        translator_factory: TranslatorFactory = default_translator_factory,
        idle_timeout_seconds: float = DEFAULT_SESSION_IDLE_TIMEOUT_SEC,
        clock: Clock = time.time,
    ) -> None:
        self._translator_factory = translator_factory
        self._idle_timeout = idle_timeout_seconds
        self._clock = clock
        self._sessions: Dict[str, PageTranslationSession] = {}
        self._last_seen: Dict[str, float] = {}

    def create(self, config: SchedulerConfig) -> PageTranslationSession:
        self.expire_idle()
        session_id = str(uuid.uuid4())
        session = PageTranslationSession(
            session_id=session_id,
            config=config,
            translator=self._translator_factory(config),
        )
        self._sessions[session_id] = session
        self._last_seen[session_id] = self._clock()
        logger.info(f"Page session created: {session_id}")
        return session

    def get(self, session_id: str) -> Optional[PageTranslationSession]:
        session = self._sessions.get(session_id)
        if session is not None:
            self._last_seen[session_id] = self._clock()
        return session

    def remove(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        self._last_seen.pop(session_id, None)
        if session is None:
            return False
        session.close()
        logger.info(f"Page session removed: {session_id}")
        return True

    def expire_idle(self) -> int:
        """
        Removes sessions idle past the timeout.

        Returns:
            Number of sessions removed.
        """
        now = self._clock()
        expired = [
            session_id
            for session_id, seen in self._last_seen.items()
            if now - seen >= self._idle_timeout and self._sessions[session_id].is_idle
        ]
        for session_id in expired:
            logger.info(f"Expiring idle page session: {session_id}")
            self.remove(session_id)
        return len(expired)

    def close_all(self) -> None:
        for session_id in list(self._sessions):
            self.remove(session_id)

    def __len__(self) -> int:
        return len(self._sessions)
