"""
Error taxonomy and bounded retry-with-fallback helpers.

Only two failures are fatal to a profile run: invalid input and an
unparseable base profile. Every other stage recovers locally through
``attempt_with_fallback``, which runs a fixed number of attempts with no
delay and then hands the last error to a deterministic fallback builder.
"""

from __future__ import annotations

import asyncio
import json
from typing import Awaitable, Callable, Optional, TypeVar

from brand_profile.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3


# =============================================================================
# Custom Exceptions
# =============================================================================

class AppError(Exception):
    """Base application exception."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InputError(AppError):
    """The caller supplied a missing or malformed site address or options."""


class ModelOutputError(AppError):
    """The base-profile model call returned content that is not a JSON object."""


class ModelResponseParseError(AppError):
    """A completion could not be parsed into the expected JSON shape."""

    def __init__(self, message: str, raw_content: str = ""):
        super().__init__(message, details={"raw_content": raw_content[:500]})
        self.raw_content = raw_content


class TransientInferenceFailure(AppError):
    """A downstream inference attempt failed; recovered by retry or fallback."""


class PipelineError(AppError):
    """Unexpected failure while running the profile graph."""


# =============================================================================
# Error Categorization
# =============================================================================

def categorize_error(error: BaseException) -> str:
    """Label an exception for structured logs."""
    if isinstance(error, InputError):
        return "INPUT_ERROR"
    if isinstance(error, (ModelOutputError, ModelResponseParseError, json.JSONDecodeError)):
        return "PARSE_ERROR"
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return "TIMEOUT_ERROR"
    if isinstance(error, (ConnectionError, OSError)):
        return "NETWORK_ERROR"
    if isinstance(error, (ValueError, TypeError, KeyError)):
        return "VALIDATION_ERROR"

    err_str = str(error).lower()
    if "rate limit" in err_str:
        return "RATE_LIMIT_ERROR"
    if "timeout" in err_str or "timed out" in err_str:
        return "TIMEOUT_ERROR"
    if "connection" in err_str:
        return "NETWORK_ERROR"

    return "UNKNOWN_ERROR"


# =============================================================================
# Bounded Retry
# =============================================================================

async def attempt_with_fallback(
    operation: Callable[[], Awaitable[T]],
    fallback: Callable[[Optional[BaseException]], T],
    *,
    stage: str,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> T:
    """
    Run ``operation`` up to ``max_attempts`` times, then fall back.

    Attempts follow each other immediately. Any exception raised by the
    operation counts as a failed attempt; the fallback receives the last
    one and must build a value of the same shape as a successful result.

    Args:
        operation: Zero-argument coroutine factory performing one attempt.
        fallback: Builder called with the last error once attempts run out.
        stage: Stage name used in log events.
        max_attempts: Total number of attempts, including the first.

    Returns:
        The first successful result, or the fallback value.
    """
    last_error: Optional[BaseException] = None

    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except Exception as e:
            last_error = e
            logger.warning(
                "Inference attempt failed",
                stage=stage,
                attempt=attempt,
                max_attempts=max_attempts,
                error_type=categorize_error(e),
                error=str(e),
            )

    logger.error(
        "Inference attempts exhausted, using fallback",
        stage=stage,
        attempts=max_attempts,
        last_error=str(last_error),
    )
    return fallback(last_error)
