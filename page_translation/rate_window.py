"""
Rate Window Module

Tracks recent request/token history and the daily counter of one scheduler,
and computes how long the next dispatch has to wait to stay within the
RPM, TPM and RPD quotas.
"""

# Standard library
import logging
from collections import deque
from datetime import datetime, timedelta
from typing import Deque, Tuple

# Local application
from page_translation.schemas import DailyUsage, SchedulerConfig

# Configure logging
logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0


def day_key_for(timestamp: float) -> str:
    """Returns the local calendar date of an epoch timestamp as YYYY-MM-DD."""
    return datetime.fromtimestamp(timestamp).date().isoformat()


def seconds_until_next_day(timestamp: float) -> float:
    """Returns the seconds from `timestamp` to the next local midnight."""
    current = datetime.fromtimestamp(timestamp)
    next_midnight = datetime.combine(current.date() + timedelta(days=1), datetime.min.time())
    return max(0.0, next_midnight.timestamp() - timestamp)


class RateWindow:
    """
    Rolling 60-second request/token history plus a per-day counter.

    All methods take the current time explicitly so the scheduler's clock
    (real or fake) is the single source of time.
    """

    def __init__(self, config: SchedulerConfig, now: float) -> None:
        self.rpm_limit = config.rpm_limit
        self.tpm_limit = config.tpm_limit
        self.rpd_limit = config.rpd_limit
        self.request_timestamps: Deque[float] = deque()
        self.token_records: Deque[Tuple[float, int]] = deque()
        self.daily = DailyUsage(day_key=day_key_for(now))

    @property
    def ideal_interval(self) -> float:
        """Even spacing between dispatches, e.g. 4s at 15 RPM."""
        return WINDOW_SECONDS / self.rpm_limit

    def prune(self, now: float) -> None:
        """
        Drops history older than the trailing window and resets the daily
        counter when the calendar day changed. Idempotent.
        """
        cutoff = now - WINDOW_SECONDS
        while self.request_timestamps and self.request_timestamps[0] <= cutoff:
            self.request_timestamps.popleft()
        while self.token_records and self.token_records[0][0] <= cutoff:
            self.token_records.popleft()

        today = day_key_for(now)
        if self.daily.day_key != today:
            logger.info(
                "Daily usage reset (%s: %d requests, %d tokens)",
                self.daily.day_key,
                self.daily.requests,
                self.daily.tokens,
            )
            self.daily = DailyUsage(day_key=today)

    def tokens_in_window(self) -> int:
        return sum(tokens for _, tokens in self.token_records)

    def record_request(self, now: float, tokens: int = 0) -> None:
        """
        Records one dispatched request.

        Args:
            now: Time of the request.
            tokens: Tokens consumed; zero for failed attempts.
        """
        self.prune(now)
        self.request_timestamps.append(now)
        if tokens > 0:
            self.token_records.append((now, tokens))
        self.daily.requests += 1
        self.daily.tokens += max(0, tokens)

    def can_dispatch(self, now: float) -> bool:
        """Checks the three quotas without considering even pacing."""
        self.prune(now)
        return (
            len(self.request_timestamps) < self.rpm_limit
            and self.tokens_in_window() < self.tpm_limit
            and self.daily.requests < self.rpd_limit
        )

    def compute_wait(self, now: float) -> float:
        """
        Computes the delay before the next dispatch may start.

        The result is the largest of:
        - the remainder of the ideal interval since the last dispatch, which
          keeps a steady cadence instead of a burst followed by a stall;
        - the time until the oldest request leaves the window when the RPM
          window is full;
        - the time until enough tokens leave the window when TPM is reached;
        - the time until local midnight when the daily quota is used up.

        Args:
            now: Current time.

        Returns:
            Seconds to wait; 0.0 means dispatch now.
        """
        self.prune(now)
        waits = [0.0]

        if self.request_timestamps:
            since_last = now - self.request_timestamps[-1]
            if since_last < self.ideal_interval:
                waits.append(self.ideal_interval - since_last)

        if len(self.request_timestamps) >= self.rpm_limit:
            oldest = self.request_timestamps[0]
            waits.append(oldest + WINDOW_SECONDS - now)

        window_tokens = self.tokens_in_window()
        if window_tokens >= self.tpm_limit:
            for timestamp, tokens in self.token_records:
                window_tokens -= tokens
                if window_tokens < self.tpm_limit:
                    waits.append(timestamp + WINDOW_SECONDS - now)
                    break

        if self.daily.requests >= self.rpd_limit:
            waits.append(seconds_until_next_day(now))

        return max(0.0, max(waits))

    def snapshot_daily(self) -> DailyUsage:
        return self.daily.model_copy()
