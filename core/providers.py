"""
Provider registry for the translation LLM.

Switches between the real Gemini client and an offline fake so tests and
local runs never touch the external API.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable

from core.llm_factory import LLMPurpose, get_llm as get_real_llm

logger = logging.getLogger(__name__)

FAKE_TRANSLATION_PREFIX = "[TEST_MODE]"


def _is_true(name: str, default: str = "false") -> bool:
    """Parse boolean-like env vars."""
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def fake_mode_requested() -> bool:
    """TEST_MODE or USE_FAKE_PROVIDERS is set."""
    return _is_true("TEST_MODE") or _is_true("USE_FAKE_PROVIDERS")


@runtime_checkable
class LLMProvider(Protocol):
    """LLM provider interface."""

    def get_llm(self, purpose: LLMPurpose, model_name: Optional[str] = None) -> Any:
        """Return an LLM client for the requested purpose."""


class RealLLMProvider:
    """Production LLM provider backed by core.llm_factory."""

    def get_llm(self, purpose: LLMPurpose, model_name: Optional[str] = None) -> Any:
        return get_real_llm(purpose, model_name=model_name)


class _FakeLLMResponse:
    """Response object shaped like an AIMessage (`.content`, `.usage_metadata`)."""

    def __init__(self, content: str, total_tokens: int) -> None:
        self.content = content
        self.usage_metadata = {"total_tokens": total_tokens}


class _FakeLLM:
    """
    Minimal async LLM used in fake mode.

    Echoes the last prompt line of the source text with a marker prefix so
    translated output stays traceable to its segment.
    """

    def __init__(self, purpose: LLMPurpose, model_name: Optional[str] = None) -> None:
        self.model = model_name or f"fake-{purpose}"
        self._purpose = purpose
        self.calls = 0

    @staticmethod
    def _prompt_text(messages: Any) -> str:
        if isinstance(messages, str):
            return messages
        parts = []
        for message in messages or []:
            parts.append(str(getattr(message, "content", message)))
        return "\n".join(parts)

    async def ainvoke(self, messages: Any) -> _FakeLLMResponse:
        self.calls += 1
        prompt = self._prompt_text(messages)
        lines = [line for line in prompt.splitlines() if line.strip()]
        source = lines[-2] if len(lines) >= 2 else (lines[0] if lines else "")
        return _FakeLLMResponse(
            f"{FAKE_TRANSLATION_PREFIX} {source.strip()}",
            total_tokens=max(1, len(prompt) // 4),
        )


class FakeLLMProvider:
    """LLM provider that never calls external APIs."""

    def __init__(self) -> None:
        self._instances: dict[str, _FakeLLM] = {}

    def get_llm(self, purpose: LLMPurpose, model_name: Optional[str] = None) -> Any:
        cache_key = f"{purpose}:{model_name or ''}"
        if cache_key not in self._instances:
            self._instances[cache_key] = _FakeLLM(purpose, model_name)
        return self._instances[cache_key]


@dataclass
class ProviderRegistry:
    """Container for active providers."""

    llm_provider: LLMProvider


_registry: Optional[ProviderRegistry] = None


def configure_providers(use_fake: Optional[bool] = None) -> ProviderRegistry:
    """
    Configure global provider registry.

    Args:
        use_fake: Force fake/real mode. If omitted, infer from env.
    """
    global _registry

    if use_fake is None:
        use_fake = fake_mode_requested()

    if use_fake:
        _registry = ProviderRegistry(llm_provider=FakeLLMProvider())
    else:
        _registry = ProviderRegistry(llm_provider=RealLLMProvider())

    logger.info("Provider registry configured (fake=%s)", use_fake)
    return _registry


def _get_registry() -> ProviderRegistry:
    global _registry
    if _registry is None:
        _registry = configure_providers()
    return _registry


def get_llm(purpose: LLMPurpose, model_name: Optional[str] = None) -> Any:
    """Return LLM client from active provider registry."""
    return _get_registry().llm_provider.get_llm(purpose, model_name=model_name)


def using_fake_providers() -> bool:
    """Return whether fake providers are currently active."""
    return isinstance(_get_registry().llm_provider, FakeLLMProvider)
