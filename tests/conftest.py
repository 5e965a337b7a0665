"""
Pytest Configuration and Shared Fixtures

Provides a fake clock, a scripted translator and mock LLMs so scheduler
tests run deterministically and never touch the Gemini API.
"""

# Standard library
import asyncio
import os
import sys
from datetime import datetime
from typing import Any, Callable, List, Optional, Tuple, Union
from unittest.mock import AsyncMock, MagicMock

# Third-party
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.providers import configure_providers  # noqa: E402
from page_translation.schemas import SchedulerConfig, TranslationResult  # noqa: E402

# Local noon, so day rollover only happens when a test asks for it
START_TIME = datetime(2024, 3, 1, 12, 0, 0).timestamp()


# ============================================================================
# Fakes
# ============================================================================

class FakeClock:
    """Manually advanced clock whose sleep moves time forward instantly."""

    def __init__(self, start: float = START_TIME) -> None:
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


Outcome = Union[TranslationResult, BaseException, Callable[[str], Any]]


class ScriptedTranslator:
    """
    Translator double that records every call.

    Outcomes queued with `script()` are consumed in order; once exhausted,
    every call succeeds with "T(<text>)".
    """

    def __init__(self, clock: FakeClock, latency: float = 0.0, tokens: int = 10) -> None:
        self.clock = clock
        self.latency = latency
        self.tokens = tokens
        self.calls: List[Tuple[float, str]] = []
        self._script: List[Outcome] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def script(self, *outcomes: Outcome) -> None:
        self._script.extend(outcomes)

    async def translate(self, text: str) -> TranslationResult:
        self.calls.append((self.clock(), text))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.latency:
                self.clock.advance(self.latency)
            await asyncio.sleep(0)

            outcome: Optional[Outcome] = self._script.pop(0) if self._script else None
            if isinstance(outcome, BaseException):
                raise outcome
            if callable(outcome):
                outcome = outcome(text)
            if isinstance(outcome, TranslationResult):
                return outcome
            return TranslationResult(
                success=True,
                translated_text=f"T({text})",
                tokens_used=self.tokens,
                provider="fake",
            )
        finally:
            self.in_flight -= 1

    @property
    def dispatch_times(self) -> List[float]:
        return [t for t, _ in self.calls]

    @property
    def texts(self) -> List[str]:
        return [text for _, text in self.calls]


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def translator(clock) -> ScriptedTranslator:
    return ScriptedTranslator(clock)


@pytest.fixture
def fast_config() -> SchedulerConfig:
    """Config with generous quotas so pacing is the only constraint."""
    return SchedulerConfig(rpm_limit=60, tpm_limit=1_000_000, rpd_limit=10_000)


@pytest.fixture
def mock_llm():
    """Creates a mock LLM instance for testing."""
    mock = AsyncMock()
    response = MagicMock(content="翻譯結果")
    response.usage_metadata = {"total_tokens": 42}
    mock.ainvoke = AsyncMock(return_value=response)
    mock.model = "gemini-test"
    return mock


@pytest.fixture
def fake_providers(monkeypatch):
    """Forces the offline provider registry for the duration of a test."""
    monkeypatch.setenv("TEST_MODE", "true")
    registry = configure_providers(use_fake=True)
    yield registry
    configure_providers(use_fake=True)
