"""
Claude-backed text-completion client.

Every model-driven stage of the pipeline talks to a ``CompletionClient``:
one ``complete`` call per attempt, returning a chat-completion shaped
response (``choices[0].message.content``). ``ClaudeService`` is the
production implementation on top of Anthropic's async SDK.

Key Features:
    - Async/await support for non-blocking operations
    - Exponential backoff on rate limits, 5xx responses and timeouts
    - Request-per-minute rate limiting
    - Token counting and cost tracking
    - JSON-object response mode with code-fence tolerant parsing

Responses are never cached: the inference stages retry by re-sampling,
so identical prompts must reach the model again.

Example:
    >>> async with ClaudeService() as llm:
    ...     completion = await llm.complete("Describe acme.com", temperature=0.1)
    ...     data = parse_json_object(completion)
"""

from __future__ import annotations

import asyncio
import json
import random
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Optional, Protocol

import anthropic
from anthropic import APIError, APIStatusError, RateLimitError
from pydantic import BaseModel, Field

from brand_profile.config.settings import Settings, get_settings
from brand_profile.utils.logger import get_logger
from brand_profile.utils.retry import ModelResponseParseError

logger = get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

ResponseFormat = Literal["json_object", "text"]

JSON_OBJECT_INSTRUCTION = (
    "Respond with a single valid JSON object only. "
    "Do not wrap it in markdown and do not add any commentary."
)

# Per 1K tokens
TOKEN_COSTS = {
    "claude-sonnet-4-20250514": {"input": 0.003, "output": 0.015},
    "claude-3-5-sonnet-20241022": {"input": 0.003, "output": 0.015},
    "claude-3-5-haiku-20241022": {"input": 0.0008, "output": 0.004},
    "claude-3-haiku-20240307": {"input": 0.00025, "output": 0.00125},
}

MAX_BACKOFF_SECONDS = 60


# =============================================================================
# Response Models
# =============================================================================

class ChatMessage(BaseModel):
    role: str = "assistant"
    content: Optional[str] = None


class ChatChoice(BaseModel):
    index: int = 0
    message: ChatMessage = Field(default_factory=ChatMessage)
    finish_reason: Optional[str] = None


class ChatCompletion(BaseModel):
    """Chat-completion shaped response returned by every completion client."""

    id: str = ""
    model: str = ""
    choices: list[ChatChoice] = Field(default_factory=list)

    @property
    def content(self) -> Optional[str]:
        """Content of the first choice, if any."""
        if not self.choices:
            return None
        return self.choices[0].message.content

    @classmethod
    def from_text(cls, text: Optional[str], **kwargs: Any) -> "ChatCompletion":
        return cls(choices=[ChatChoice(message=ChatMessage(content=text))], **kwargs)


class CompletionClient(Protocol):
    """Anything that can turn a prompt into a ``ChatCompletion``."""

    async def complete(
        self,
        prompt: str,
        *,
        system_prompt: Optional[str] = None,
        response_format: ResponseFormat = "json_object",
        temperature: float = 0.7,
    ) -> ChatCompletion:
        ...


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class TokenUsage:
    """Token usage tracking for a single request."""
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    estimated_cost: float = 0.0
    model: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def calculate_cost(self, model: str) -> float:
        """Calculate estimated cost based on token usage."""
        if model in TOKEN_COSTS:
            costs = TOKEN_COSTS[model]
            input_cost = (self.input_tokens / 1000) * costs["input"]
            output_cost = (self.output_tokens / 1000) * costs["output"]
            self.estimated_cost = input_cost + output_cost
        return self.estimated_cost


@dataclass
class RateLimiter:
    """Sliding-window request limiter."""
    max_requests: int = 50
    window_seconds: int = 60

    _request_timestamps: list[float] = field(default_factory=list)

    def _cleanup_old_entries(self) -> None:
        cutoff = time.time() - self.window_seconds
        self._request_timestamps = [t for t in self._request_timestamps if t > cutoff]

    async def acquire(self) -> float:
        """
        Wait until a request slot is free, then claim it.

        Returns the number of seconds spent waiting.
        """
        self._cleanup_old_entries()
        waited = 0.0

        if len(self._request_timestamps) >= self.max_requests:
            wait_time = self._request_timestamps[0] + self.window_seconds - time.time()
            if wait_time > 0:
                logger.warning(
                    "Rate limit reached, waiting",
                    wait_seconds=round(wait_time, 2),
                    current_requests=len(self._request_timestamps),
                )
                await asyncio.sleep(wait_time)
                waited = wait_time
                self._cleanup_old_entries()

        self._request_timestamps.append(time.time())
        return waited


# =============================================================================
# Custom Exceptions
# =============================================================================

class ClaudeServiceError(Exception):
    """Base exception for Claude service errors."""
    pass


class MaxRetriesExceededError(ClaudeServiceError):
    """Raised when transport retries are exhausted."""
    pass


# =============================================================================
# JSON Parsing
# =============================================================================

CODE_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
JSON_BODY_PATTERN = re.compile(r"(\{[\s\S]*\}|\[[\s\S]*\])")


def extract_json_text(text: str) -> str:
    """Extract JSON from text that may contain markdown or other content."""
    matches = CODE_BLOCK_PATTERN.findall(text)
    if matches:
        return matches[0].strip()

    matches = JSON_BODY_PATTERN.findall(text)
    if matches:
        # Longest match is most likely the whole document
        return max(matches, key=len)

    return text.strip()


def parse_json_object(completion: Optional[ChatCompletion]) -> dict[str, Any]:
    """
    Parse the first choice of a completion as a JSON object.

    Missing or blank content is treated as an empty object.

    Raises:
        ModelResponseParseError: If the content is not JSON or not an object.
    """
    content = completion.content if completion is not None else None
    if content is None or not content.strip():
        return {}

    try:
        data = json.loads(extract_json_text(content))
    except json.JSONDecodeError as e:
        raise ModelResponseParseError(f"invalid JSON returned by model: {e}", raw_content=content)

    if not isinstance(data, dict):
        raise ModelResponseParseError(
            f"model returned a JSON {type(data).__name__}, expected an object",
            raw_content=content,
        )
    return data


# =============================================================================
# Main Service Class
# =============================================================================

class ClaudeService:
    """
    Completion client backed by Anthropic's Messages API.

    Example:
        >>> async with ClaudeService() as llm:
        ...     completion = await llm.complete(prompt, system_prompt=system)

    Attributes:
        settings: Application settings
        client: Anthropic API client
        rate_limiter: Request-per-minute limiter
        token_usage_history: Token usage of every successful request
        total_cost: Running total of estimated API costs
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        api_key: Optional[str] = None,
        max_retries: Optional[int] = None,
        client: Optional[anthropic.AsyncAnthropic] = None,
    ):
        """
        Initialize the Claude service.

        Args:
            settings: Application settings instance
            api_key: Override API key (uses settings if not provided)
            max_retries: Transport retry attempts (uses settings if not provided)
            client: Pre-built Anthropic client
        """
        self.settings = settings or get_settings()
        self.max_retries = max_retries or self.settings.llm_max_retries
        self.client = client or anthropic.AsyncAnthropic(
            api_key=api_key or self.settings.anthropic_api_key.get_secret_value(),
            timeout=float(self.settings.request_timeout_seconds) * 4,
        )
        self.rate_limiter = RateLimiter(max_requests=self.settings.max_requests_per_minute)

        self.token_usage_history: list[TokenUsage] = []
        self.total_cost: float = 0.0

        logger.info(
            "ClaudeService initialized",
            model=self.settings.claude_model,
            max_retries=self.max_retries,
        )

    async def __aenter__(self) -> "ClaudeService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the client connection."""
        await self.client.close()
        logger.info("ClaudeService closed", **self.get_usage_stats())

    # =========================================================================
    # Completion API
    # =========================================================================

    async def complete(
        self,
        prompt: str,
        *,
        system_prompt: Optional[str] = None,
        response_format: ResponseFormat = "json_object",
        temperature: float = 0.7,
    ) -> ChatCompletion:
        """
        Run one completion.

        Args:
            prompt: User message
            system_prompt: Optional system prompt
            response_format: ``json_object`` asks the model for a bare JSON object
            temperature: Sampling temperature

        Returns:
            ChatCompletion with the model's text as the first choice
        """
        system = system_prompt or ""
        if response_format == "json_object":
            system = f"{system}\n\n{JSON_OBJECT_INSTRUCTION}".strip()

        text, usage, response_id = await self._call_api(
            messages=[{"role": "user", "content": prompt}],
            system=system,
            temperature=temperature,
        )
        return ChatCompletion.from_text(text, id=response_id, model=usage.model)

    async def _call_api(
        self,
        messages: list[dict[str, str]],
        system: str = "",
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> tuple[str, TokenUsage, str]:
        """
        Make an API call with retry logic and rate limiting.

        Returns:
            Tuple of (response_text, token_usage, response_id)

        Raises:
            ClaudeServiceError: On non-retryable client errors
            MaxRetriesExceededError: When retries are exhausted
        """
        max_tokens = max_tokens or self.settings.claude_max_tokens
        await self.rate_limiter.acquire()

        last_error: Optional[Exception] = None
        for attempt in range(self.max_retries):
            try:
                start_time = time.time()

                request: dict[str, Any] = {
                    "model": self.settings.claude_model,
                    "max_tokens": max_tokens,
                    "temperature": temperature,
                    "messages": messages,
                }
                if system:
                    request["system"] = system
                response = await self.client.messages.create(**request)

                elapsed = time.time() - start_time
                response_text = "".join(
                    block.text for block in response.content if getattr(block, "type", "text") == "text"
                )

                usage = TokenUsage(
                    input_tokens=response.usage.input_tokens,
                    output_tokens=response.usage.output_tokens,
                    total_tokens=response.usage.input_tokens + response.usage.output_tokens,
                    model=self.settings.claude_model,
                )
                usage.calculate_cost(self.settings.claude_model)
                self.token_usage_history.append(usage)
                self.total_cost += usage.estimated_cost

                logger.debug(
                    "API call successful",
                    attempt=attempt + 1,
                    elapsed_seconds=f"{elapsed:.2f}",
                    input_tokens=usage.input_tokens,
                    output_tokens=usage.output_tokens,
                )

                return response_text, usage, getattr(response, "id", "")

            except RateLimitError as e:
                last_error = e
                wait_time = self._calculate_backoff(attempt, base=30)
                logger.warning(
                    "Rate limit hit, backing off",
                    attempt=attempt + 1,
                    wait_seconds=wait_time,
                    error=str(e),
                )
                await asyncio.sleep(wait_time)

            except APIStatusError as e:
                last_error = e
                if e.status_code >= 500:
                    wait_time = self._calculate_backoff(attempt)
                    logger.warning(
                        "Server error, retrying",
                        attempt=attempt + 1,
                        status_code=e.status_code,
                        wait_seconds=wait_time,
                    )
                    await asyncio.sleep(wait_time)
                elif e.status_code == 401:
                    logger.error("Authentication failed", error=str(e))
                    raise ClaudeServiceError(f"Authentication failed: {e}")
                else:
                    logger.error("API error", status_code=e.status_code, error=str(e))
                    raise ClaudeServiceError(f"API error: {e}")

            except APIError as e:
                last_error = e
                wait_time = self._calculate_backoff(attempt)
                logger.warning(
                    "API error, retrying",
                    attempt=attempt + 1,
                    wait_seconds=wait_time,
                    error=str(e),
                )
                await asyncio.sleep(wait_time)

            except asyncio.TimeoutError as e:
                last_error = e
                wait_time = self._calculate_backoff(attempt)
                logger.warning(
                    "Request timeout, retrying",
                    attempt=attempt + 1,
                    wait_seconds=wait_time,
                )
                await asyncio.sleep(wait_time)

        logger.error(
            "Max retries exceeded",
            max_retries=self.max_retries,
            last_error=str(last_error),
        )
        raise MaxRetriesExceededError(
            f"Failed after {self.max_retries} attempts: {last_error}"
        )

    def _calculate_backoff(self, attempt: int, base: float = 1.0) -> float:
        """Calculate exponential backoff with jitter."""
        backoff = base * (2 ** attempt)
        jitter = random.uniform(0, backoff * 0.1)
        return min(backoff + jitter, MAX_BACKOFF_SECONDS)

    def get_usage_stats(self) -> dict[str, Any]:
        """Get usage statistics for the service."""
        if not self.token_usage_history:
            return {
                "total_requests": 0,
                "total_tokens": 0,
                "total_cost": 0.0,
                "avg_tokens_per_request": 0,
            }

        total_tokens = sum(u.total_tokens for u in self.token_usage_history)
        return {
            "total_requests": len(self.token_usage_history),
            "total_tokens": total_tokens,
            "total_input_tokens": sum(u.input_tokens for u in self.token_usage_history),
            "total_output_tokens": sum(u.output_tokens for u in self.token_usage_history),
            "total_cost": self.total_cost,
            "avg_tokens_per_request": total_tokens // len(self.token_usage_history),
        }


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    "ChatChoice",
    "ChatCompletion",
    "ChatMessage",
    "ClaudeService",
    "ClaudeServiceError",
    "CompletionClient",
    "JSON_OBJECT_INSTRUCTION",
    "MaxRetriesExceededError",
    "RateLimiter",
    "ResponseFormat",
    "TokenUsage",
    "extract_json_text",
    "parse_json_object",
]
