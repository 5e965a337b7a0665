"""
Rate-Limited Scheduler Module

Funnels translation work items of one page session through a single external
quota. Items are deduplicated on enqueue, dispatched one at a time in
priority order, paced evenly across the RPM window, retried on failure with
a bounded number of attempts, and reported through typed callbacks.

The dispatch loop is an asyncio task on the running event loop. It suspends
only while waiting for pacing/quota and while awaiting the translation call,
so enqueue/get_status/pause can be called freely in between.

Note on clear(): an in-flight translation call cannot be recalled. A call
started just before clear() may still finish afterwards; its quota use is
recorded and its on_result/on_error callback may fire for an identity the
scheduler no longer tracks. Callers must tolerate that.
"""

# Standard library
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Set

# Local application
from page_translation.dedup import segment_key
from page_translation.errors import TranslationConfigError, TranslationError
from page_translation.progress import build_progress
from page_translation.rate_window import RateWindow
from page_translation.schemas import (
    ProgressSnapshot,
    SchedulerConfig,
    SchedulerState,
    SchedulerStatus,
    TranslationResult,
    WorkItem,
)
from page_translation.translator import TranslationProvider, estimate_tokens

# Configure logging
logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]
ProgressCallback = Callable[[ProgressSnapshot], None]
CompleteCallback = Callable[[], None]
ErrorCallback = Callable[[BaseException, WorkItem], None]
ResultCallback = Callable[[WorkItem, TranslationResult], None]


@dataclass
class SchedulerHooks:
    """Observer callbacks of a scheduler. Every hook is optional."""

    on_progress: Optional[ProgressCallback] = None
    on_complete: Optional[CompleteCallback] = None
    on_error: Optional[ErrorCallback] = None
    on_result: Optional[ResultCallback] = None


class RateLimitedScheduler:
    """
    Single-flight, quota-aware dispatch queue for one page session.

    Args:
        translator: Collaborator called once per dispatch attempt.
        config: Quota limits and retry policy.
        hooks: Observer callbacks.
        clock: Returns the current epoch time in seconds.
        sleep: Coroutine used for pacing waits.
    """

    def __init__(
        self,
        translator: TranslationProvider,
        config: Optional[SchedulerConfig] = None,
        hooks: Optional[SchedulerHooks] = None,
        clock: Clock = time.time,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.config = config or SchedulerConfig()
        self.hooks = hooks or SchedulerHooks()
        self._translator = translator
        self._clock = clock
        self._sleep = sleep

        self._queue: List[WorkItem] = []
        self._processed: Set[str] = set()
        self._succeeded = 0
        self._failed = 0
        self._window = RateWindow(self.config, now=clock())
        self._state = SchedulerState.IDLE
        self._current_item: Optional[WorkItem] = None

        self._task: Optional["asyncio.Task[None]"] = None
        self._in_flight = False
        self._in_flight_id: Optional[str] = None
        self._flight_lock = asyncio.Lock()
        # Bumped by clear(); loops and in-flight calls of older generations
        # no longer touch queue state.
        self._generation = 0

        logger.info(
            "RateLimitedScheduler initialized (rpm=%d, tpm=%d, rpd=%d)",
            self.config.rpm_limit,
            self.config.tpm_limit,
            self.config.rpd_limit,
        )

    # --- properties ---

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    @property
    def processed_count(self) -> int:
        return len(self._processed)

    @property
    def rate_window(self) -> RateWindow:
        return self._window

    def pending_items(self) -> List[WorkItem]:
        """Returns a copy of the pending queue in dispatch order."""
        return list(self._queue)

    def is_tracked(self, identity: str) -> bool:
        """Whether an identity is pending, in flight or already processed."""
        return (
            identity in self._processed
            or identity == self._in_flight_id
            or any(i.id == identity for i in self._queue)
        )

    # --- public operations ---

    def enqueue(self, item: WorkItem) -> bool:
        """
        Adds a work item unless its identity was already seen.

        Args:
            item: Work item to schedule.

        Returns:
            True if the item was queued, False if it is a duplicate of a
            pending, in-flight or processed item.
        """
        key = segment_key(item.text)
        if key in self._processed:
            logger.debug("Segment already processed, skipping: %s", key)
            return False
        if key == self._in_flight_id:
            logger.debug("Segment already in flight, skipping: %s", key)
            return False
        if any(pending.id == key for pending in self._queue):
            logger.debug("Segment already queued, skipping: %s", key)
            return False

        self._queue.append(item)
        # list.sort is stable: FIFO among equal priorities
        self._queue.sort(key=lambda pending: -pending.priority)

        logger.debug(
            "Segment queued (%d pending, %d processed): %s",
            len(self._queue),
            len(self._processed),
            item.text[:50],
        )
        return True

    def start(self) -> None:
        """
        Starts draining the queue.

        No-op while already draining or when the queue is empty. Requires a
        running event loop.
        """
        if self._state == SchedulerState.PAUSED:
            self.resume()
            return
        if self._state == SchedulerState.DRAINING:
            logger.debug("Scheduler already draining")
            return
        if not self._queue:
            logger.debug("Queue empty, nothing to start")
            return

        self._state = SchedulerState.DRAINING
        logger.info("Starting translation queue with %d items", len(self._queue))
        self._emit_progress()
        self._ensure_loop()

    def pause(self) -> None:
        """
        Stops new dispatches. An in-flight call is allowed to finish; a loop
        waiting on pacing is cancelled.
        """
        if self._state == SchedulerState.PAUSED:
            return
        self._state = SchedulerState.PAUSED
        self._cancel_waiting_loop()
        logger.info("Translation queue paused (%d pending)", len(self._queue))

    def resume(self) -> None:
        """Continues a paused queue with its order and retry counters intact."""
        if self._state != SchedulerState.PAUSED:
            return
        if not self._queue:
            self._state = SchedulerState.IDLE
            return

        self._state = SchedulerState.DRAINING
        logger.info("Resuming translation queue (%d pending)", len(self._queue))
        self._ensure_loop()

    def clear(self) -> None:
        """Drops all pending and processed state and returns to idle."""
        self._generation += 1
        self._cancel_waiting_loop()
        # A loop that is mid-call keeps running detached until the call returns
        self._task = None
        self._queue.clear()
        self._processed.clear()
        self._in_flight_id = None
        self._succeeded = 0
        self._failed = 0
        self._current_item = None
        self._state = SchedulerState.IDLE
        logger.info("Translation queue cleared")

    def get_status(self) -> SchedulerStatus:
        """
        Returns a read-only snapshot; only lazy pruning touches the window.

        `can_dispatch_now` is true exactly when `wait_seconds` is zero, so it
        accounts for even pacing as well as the hard quotas.
        """
        now = self._clock()
        wait = self._window.compute_wait(now)
        return SchedulerStatus(
            queue_length=len(self._queue),
            processed_count=len(self._processed),
            succeeded_count=self._succeeded,
            failed_count=self._failed,
            state=self._state,
            daily_usage=self._window.snapshot_daily(),
            can_dispatch_now=wait <= 0,
            wait_seconds=wait,
            requests_last_minute=len(self._window.request_timestamps),
            tokens_last_minute=self._window.tokens_in_window(),
            current_segment_id=self._current_item.id if self._current_item else None,
        )

    def get_progress(self) -> ProgressSnapshot:
        return build_progress(
            processed_count=len(self._processed),
            queue_length=len(self._queue),
            state=self._state,
            succeeded=self._succeeded,
            failed=self._failed,
            current_segment_id=self._current_item.id if self._current_item else None,
        )

    async def join(self) -> None:
        """Waits until the current dispatch loop (if any) has stopped."""
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})

    # --- dispatch loop ---

    def _ensure_loop(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(self._run(self._generation))

    def _cancel_waiting_loop(self) -> None:
        if self._task is not None and not self._task.done() and not self._in_flight:
            self._task.cancel()
            self._task = None

    def _should_continue(self, generation: int) -> bool:
        return (
            generation == self._generation
            and self._state == SchedulerState.DRAINING
            and bool(self._queue)
        )

    async def _run(self, generation: int) -> None:
        while True:
            if not self._should_continue(generation):
                self._finish(generation)
                return

            async with self._flight_lock:
                if not self._should_continue(generation):
                    continue
                wait = self._window.compute_wait(self._clock())
                if wait <= 0:
                    item = self._queue.pop(0)
                    await self._dispatch(item, generation)
                    continue

            logger.info("Waiting %.1fs to respect API rate limits", wait)
            await self._sleep(wait)

    def _finish(self, generation: int) -> None:
        if generation != self._generation:
            return
        if asyncio.current_task() is self._task:
            self._task = None
        if self._state == SchedulerState.DRAINING:
            self._state = SchedulerState.IDLE
            self._current_item = None
            logger.info(
                "Translation queue drained (%d succeeded, %d failed)",
                self._succeeded,
                self._failed,
            )
            self._notify("on_complete", self.hooks.on_complete)

    async def _call_translator(self, item: WorkItem) -> TranslationResult:
        try:
            result = await asyncio.wait_for(
                self._translator.translate(item.text),
                timeout=self.config.request_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise TranslationError(
                f"Translation timed out after {self.config.request_timeout_seconds}s"
            ) from e
        if not result.success:
            raise TranslationError(result.error or "Translation request failed")
        return result

    async def _dispatch(self, item: WorkItem, generation: int) -> None:
        self._current_item = item
        logger.info(
            "Dispatching segment %s (attempt %d, %d remaining): %s",
            item.id,
            item.retry_count + 1,
            len(self._queue),
            item.text[:50],
        )

        self._in_flight = True
        self._in_flight_id = item.id
        try:
            result = await self._call_translator(item)
        except TranslationConfigError as e:
            # Never reached the API; no quota used
            self._handle_failure(item, e, generation)
            return
        except Exception as e:  # noqa: BLE001
            # The API saw the attempt, so it counts against RPM/RPD
            self._window.record_request(self._clock(), tokens=0)
            self._handle_failure(item, e, generation)
            return
        finally:
            self._in_flight = False
            if generation == self._generation:
                self._in_flight_id = None

        tokens = result.tokens_used or estimate_tokens(item.text)
        self._window.record_request(self._clock(), tokens=tokens)

        if generation != self._generation:
            logger.info("Segment %s finished after clear(); result not tracked", item.id)
            self._notify("on_result", self.hooks.on_result, item, result)
            return

        self._processed.add(item.id)
        self._succeeded += 1
        self._emit_progress()
        self._notify("on_result", self.hooks.on_result, item, result)

    def _handle_failure(self, item: WorkItem, error: Exception, generation: int) -> None:
        if generation != self._generation:
            logger.warning("Segment %s failed after clear(): %s", item.id, error)
            self._notify("on_error", self.hooks.on_error, error, item)
            return

        if isinstance(error, TranslationConfigError):
            logger.error("Translation configuration error, pausing queue: %s", error)
            self._queue.insert(0, item)
            self._state = SchedulerState.PAUSED
            self._current_item = None
            self._emit_progress()
            self._notify("on_error", self.hooks.on_error, error, item)
            return

        if item.retry_count < self.config.max_retries:
            item.retry_count += 1
            # Retries jump ahead of the priority order
            self._queue.insert(0, item)
            logger.warning(
                "Translation failed, retry %d/%d for %s: %s",
                item.retry_count,
                self.config.max_retries,
                item.id,
                error,
            )
            self._emit_progress()
            return

        logger.error("Translation failed permanently, skipping %s: %s", item.id, error)
        self._processed.add(item.id)
        self._failed += 1
        self._emit_progress()
        self._notify("on_error", self.hooks.on_error, error, item)

    # --- notifications ---

    def _emit_progress(self) -> None:
        if self.hooks.on_progress is not None:
            self._notify("on_progress", self.hooks.on_progress, self.get_progress())

    @staticmethod
    def _notify(name: str, callback: Optional[Callable[..., None]], *args: object) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:  # noqa: BLE001
            logger.error("Scheduler callback %s raised: %s", name, e, exc_info=True)
