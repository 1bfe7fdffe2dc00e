import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from brand_profile.utils.retry import (
    InputError,
    ModelOutputError,
    ModelResponseParseError,
    TransientInferenceFailure,
    attempt_with_fallback,
    categorize_error,
)


@pytest.mark.asyncio
async def test_attempt_with_fallback_first_success():
    operation = AsyncMock(return_value="ok")
    fallback = MagicMock()

    result = await attempt_with_fallback(operation, fallback, stage="test")

    assert result == "ok"
    assert operation.call_count == 1
    fallback.assert_not_called()


@pytest.mark.asyncio
async def test_attempt_with_fallback_recovers_on_later_attempt():
    operation = AsyncMock(side_effect=[ValueError("bad"), TransientInferenceFailure("again"), "ok"])

    result = await attempt_with_fallback(operation, lambda e: "fallback", stage="test", max_attempts=3)

    assert result == "ok"
    assert operation.call_count == 3


@pytest.mark.asyncio
async def test_attempt_with_fallback_exhausted_passes_last_error():
    errors = [ValueError("first"), RuntimeError("last")]
    operation = AsyncMock(side_effect=errors)
    fallback = MagicMock(return_value="fallback")

    result = await attempt_with_fallback(operation, fallback, stage="test", max_attempts=2)

    assert result == "fallback"
    assert operation.call_count == 2
    fallback.assert_called_once_with(errors[1])


@pytest.mark.asyncio
async def test_attempt_with_fallback_single_attempt():
    operation = AsyncMock(side_effect=ValueError("bad"))

    result = await attempt_with_fallback(operation, lambda e: f"fallback: {e}", stage="test", max_attempts=1)

    assert result == "fallback: bad"
    assert operation.call_count == 1


def test_categorize_error():
    assert categorize_error(InputError("x")) == "INPUT_ERROR"
    assert categorize_error(ModelOutputError("x")) == "PARSE_ERROR"
    assert categorize_error(ModelResponseParseError("x", raw_content="{")) == "PARSE_ERROR"
    assert categorize_error(json.JSONDecodeError("x", "doc", 0)) == "PARSE_ERROR"
    assert categorize_error(asyncio.TimeoutError()) == "TIMEOUT_ERROR"
    assert categorize_error(ConnectionError("refused")) == "NETWORK_ERROR"
    assert categorize_error(KeyError("name")) == "VALIDATION_ERROR"
    assert categorize_error(Exception("Rate limit exceeded")) == "RATE_LIMIT_ERROR"
    assert categorize_error(Exception("request timed out")) == "TIMEOUT_ERROR"
    assert categorize_error(Exception("something odd")) == "UNKNOWN_ERROR"


def test_parse_error_keeps_raw_content_preview():
    error = ModelResponseParseError("bad", raw_content="x" * 1000)
    assert error.raw_content == "x" * 1000
    assert len(error.details["raw_content"]) == 500
