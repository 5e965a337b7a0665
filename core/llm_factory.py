"""
LLM Factory Module

Provides cached Gemini instances with purpose-specific configurations.
Translation runs at low temperature; the key validation call only needs a
handful of output tokens.
"""

# Standard library
import logging
import os
from functools import lru_cache
from typing import Literal, Optional

# Third-party
from langchain_google_genai import ChatGoogleGenerativeAI

# Configure logging
logger = logging.getLogger(__name__)

LLMPurpose = Literal["translation", "validation"]

_DEFAULT_MODEL = "gemini-2.5-flash"

_LLM_CONFIGS: dict[str, dict] = {
    "translation": {
        "temperature": 0.1,
        "max_output_tokens": 8192,
    },
    "validation": {
        "temperature": 0.0,
        "max_output_tokens": 16,
    },
}


def default_model() -> str:
    """Model used when no override is given (`TRANSLATION_MODEL` or built-in)."""
    return os.getenv("TRANSLATION_MODEL") or _DEFAULT_MODEL


@lru_cache(maxsize=8)
def get_llm(purpose: LLMPurpose, model_name: Optional[str] = None) -> ChatGoogleGenerativeAI:
    """
    Returns a cached LLM instance for a specific purpose.

    Args:
        purpose: The intended use case for the LLM.
            - "translation": Segment translation (high precision)
            - "validation": API key check
        model_name: Optional model override.

    Returns:
        Configured ChatGoogleGenerativeAI instance.

    Example:
        llm = get_llm("translation")
        response = await llm.ainvoke(messages)
    """
    config = _LLM_CONFIGS.get(purpose, _LLM_CONFIGS["translation"])
    model = model_name or default_model()

    logger.info(f"Initializing LLM for purpose: {purpose} (model: {model}, config: {config})")

    return ChatGoogleGenerativeAI(
        model=model,
        **config
    )


def clear_llm_cache() -> None:
    """Clears the LLM instance cache."""
    get_llm.cache_clear()
    logger.info("LLM cache cleared")
