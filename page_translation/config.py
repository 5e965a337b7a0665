"""Environment-driven configuration for page translation sessions."""

# Standard library
import logging
import os
from typing import Optional

# Local application
from page_translation.schemas import (
    DEFAULT_MAX_PARAGRAPH_LENGTH,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MIN_PARAGRAPH_LENGTH,
    DEFAULT_REQUEST_TIMEOUT_SEC,
    DEFAULT_RPD_LIMIT,
    DEFAULT_RPM_LIMIT,
    DEFAULT_SESSION_IDLE_TIMEOUT_SEC,
    DEFAULT_TARGET_LANGUAGE,
    DEFAULT_TPM_LIMIT,
    SchedulerConfig,
    SessionCreateRequest,
)

logger = logging.getLogger(__name__)

_ENV_PREFIX = "PAGE_TRANSLATION_"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(_ENV_PREFIX + name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s%s=%r", _ENV_PREFIX, name, raw)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(_ENV_PREFIX + name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s%s=%r", _ENV_PREFIX, name, raw)
        return default


def load_scheduler_config(
    overrides: Optional[SessionCreateRequest] = None,
) -> SchedulerConfig:
    """
    Builds a SchedulerConfig from environment variables.

    Unset or unparsable variables fall back to the defaults. Out-of-range
    values are rejected by SchedulerConfig validation.

    Args:
        overrides: Optional per-session values that take precedence.

    Returns:
        Validated SchedulerConfig.
    """
    values = {
        "rpm_limit": _env_int("RPM_LIMIT", DEFAULT_RPM_LIMIT),
        "tpm_limit": _env_int("TPM_LIMIT", DEFAULT_TPM_LIMIT),
        "rpd_limit": _env_int("RPD_LIMIT", DEFAULT_RPD_LIMIT),
        "max_paragraph_length": _env_int(
            "MAX_PARAGRAPH_LENGTH", DEFAULT_MAX_PARAGRAPH_LENGTH
        ),
        "min_paragraph_length": _env_int(
            "MIN_PARAGRAPH_LENGTH", DEFAULT_MIN_PARAGRAPH_LENGTH
        ),
        "max_retries": _env_int("MAX_RETRIES", DEFAULT_MAX_RETRIES),
        "request_timeout_seconds": _env_float(
            "REQUEST_TIMEOUT_SEC", DEFAULT_REQUEST_TIMEOUT_SEC
        ),
        "target_language": os.getenv(
            "TRANSLATION_TARGET_LANGUAGE", DEFAULT_TARGET_LANGUAGE
        ),
    }
    if overrides is not None:
        values.update(overrides.model_dump(exclude_none=True))

    return SchedulerConfig(**values)


def load_session_idle_timeout() -> float:
    """Seconds an untouched page session is kept before it may be expired."""
    timeout = _env_float("SESSION_IDLE_TIMEOUT_SEC", DEFAULT_SESSION_IDLE_TIMEOUT_SEC)
    if timeout <= 0:
        logger.warning(
            "Ignoring non-positive %sSESSION_IDLE_TIMEOUT_SEC=%s", _ENV_PREFIX, timeout
        )
        return DEFAULT_SESSION_IDLE_TIMEOUT_SEC
    return timeout
