"""
Gemini Translation Provider

Translates single text segments through Google Gemini. The scheduler treats
this provider as stateless: it only turns text into a TranslationResult and
never does quota bookkeeping of its own.
"""

# Standard library
import logging
import math
import os
import re
import time
from typing import Any, Optional, Protocol, runtime_checkable

# Third-party
from langchain_core.prompts import ChatPromptTemplate

# Local application
from core.llm_factory import LLMPurpose
from core.providers import get_llm, using_fake_providers
from page_translation.errors import InvalidSegmentError, TranslationConfigError
from page_translation.schemas import DEFAULT_TARGET_LANGUAGE, TranslationResult

# Configure logging
logger = logging.getLogger(__name__)

PROVIDER_NAME = "google-gemini"

LANGUAGE_NAMES: dict[str, str] = {
    "zh-TW": "繁體中文",
    "zh-CN": "簡體中文",
    "ja": "日文",
    "ko": "韓文",
    "en": "英文",
}

TRANSLATION_PROMPT = """請將以下文本翻譯成{target_language}，要求：
1. 保持原文的語氣和風格
2. 確保翻譯自然流暢
3. 保留專業術語的準確性
4. 只返回翻譯結果，不要包含其他說明

原文：
{text}

翻譯："""

_LATIN_RE = re.compile(r"[a-zA-Z\s]")
_CJK_RE = re.compile(r"[\u4e00-\u9fff]")


@runtime_checkable
class TranslationProvider(Protocol):
    """Translation collaborator consumed by the scheduler."""

    async def translate(self, text: str) -> TranslationResult:
        """Translate one segment. Raises on transport failures."""


def estimate_tokens(text: str) -> int:
    """
    Estimates the token count of text.

    Roughly 4 latin characters, 2 CJK characters or 3 other characters per
    token.

    Args:
        text: Text to estimate.

    Returns:
        Estimated token count (rounded up).
    """
    if not text:
        return 0
    latin = len(_LATIN_RE.findall(text))
    cjk = len(_CJK_RE.findall(text))
    other = len(text) - latin - cjk
    return math.ceil(latin / 4 + cjk / 2 + other / 3)


def extract_total_tokens(response: Any) -> int:
    """
    Reads total token usage from a LangChain response.

    Args:
        response: AIMessage (or compatible) returned by the LLM.

    Returns:
        Total tokens, or 0 if the response carries no usage metadata.
    """
    usage = getattr(response, "usage_metadata", None) or {}
    try:
        return int(usage.get("total_tokens", 0) or 0)
    except (TypeError, ValueError, AttributeError):
        return 0


def _response_text(response: Any) -> str:
    content = getattr(response, "content", response)
    if isinstance(content, list):
        # Gemini may return content parts
        content = "".join(
            part.get("text", "") if isinstance(part, dict) else str(part)
            for part in content
        )
    return str(content or "")


class GeminiTranslator:
    """Translates text segments with the Gemini translation LLM."""

    def __init__(
        self,
        target_language: str = DEFAULT_TARGET_LANGUAGE,
        llm: Optional[Any] = None,
    ) -> None:
        self.target_language = target_language
        self._llm = llm
        self._prompt = ChatPromptTemplate.from_template(TRANSLATION_PROMPT)
        self.request_count = 0
        self.token_usage = 0

    @property
    def target_language_name(self) -> str:
        return LANGUAGE_NAMES.get(self.target_language, self.target_language)

    def _resolve_llm(self, purpose: LLMPurpose = "translation") -> Any:
        if self._llm is not None:
            return self._llm
        if not using_fake_providers() and not os.getenv("GOOGLE_API_KEY"):
            raise TranslationConfigError("GOOGLE_API_KEY not configured")
        return get_llm(purpose)

    async def translate(self, text: str) -> TranslationResult:
        """
        Translates one segment.

        Args:
            text: Segment text.

        Returns:
            TranslationResult; `success=False` when the model returned nothing.

        Raises:
            InvalidSegmentError: If text is empty.
            TranslationConfigError: If the API key is missing.
        """
        if not text or not text.strip():
            raise InvalidSegmentError("Translation text must not be empty")

        llm = self._resolve_llm()
        messages = self._prompt.format_messages(
            target_language=self.target_language_name, text=text
        )

        start = time.perf_counter()
        response = await llm.ainvoke(messages)
        elapsed = (time.perf_counter() - start) * 1000

        model = getattr(llm, "model", None)
        translated = _response_text(response).strip()
        if not translated:
            logger.warning("Gemini returned an empty translation (%.0fms)", elapsed)
            return TranslationResult(
                success=False,
                provider=PROVIDER_NAME,
                model=model,
                error="Empty translation returned",
            )

        tokens = extract_total_tokens(response) or estimate_tokens(text + translated)
        self.request_count += 1
        self.token_usage += tokens
        logger.info("Gemini translated %d chars in %.0fms (%d tokens)", len(text), elapsed, tokens)

        return TranslationResult(
            success=True,
            translated_text=translated,
            tokens_used=tokens,
            provider=PROVIDER_NAME,
            model=model,
        )

    async def validate_api_key(self) -> bool:
        """
        Sends a minimal request to check that the API key works.

        Returns:
            True if the model answered, False otherwise.
        """
        try:
            llm = self._resolve_llm("validation")
            response = await llm.ainvoke("Hello")
        except TranslationConfigError as e:
            logger.warning(f"API key validation skipped: {e}")
            return False
        except Exception as e:  # noqa: BLE001
            logger.error(f"Gemini API key validation failed: {e}")
            return False
        return bool(_response_text(response).strip())

    def get_usage_stats(self) -> dict[str, int]:
        return {"request_count": self.request_count, "token_usage": self.token_usage}
