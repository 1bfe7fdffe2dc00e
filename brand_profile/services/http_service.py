"""
HTTP fetch capability for sitemap, encyclopedia and knowledge-graph requests.

``HttpFetcher.fetch`` returns the status code and body of a GET request. A
non-success status is returned to the caller rather than raised; timeouts
and network errors are retried with exponential backoff and re-raised once
the attempts run out.

Example:
    >>> async with HttpFetcher() as http:
    ...     response = await http.fetch("https://example.com/sitemap.xml")
    ...     if response.ok:
    ...         print(len(response.text))
"""

from __future__ import annotations

import json
from typing import Any, Optional

import httpx
from pydantic import BaseModel
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from brand_profile.config.settings import Settings, get_settings
from brand_profile.utils.logger import get_logger

logger = get_logger(__name__)


class HttpResponse(BaseModel):
    """Status code and body of a completed request."""

    status_code: int
    text: str = ""
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json_body(self) -> Any:
        """Decode the body as JSON."""
        return json.loads(self.text)


class HttpFetcher:
    """
    Thin async wrapper around ``httpx.AsyncClient``.

    The client is created lazily on first use, or injected for tests.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_settings()
        self._client = client
        self._owns_client = client is None

    async def connect(self) -> None:
        """Initialize HTTP client."""
        if self._client is None:
            timeout = float(self.settings.request_timeout_seconds)
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(
                    connect=10.0,
                    read=timeout,
                    write=10.0,
                    pool=5.0,
                ),
                limits=httpx.Limits(
                    max_keepalive_connections=5,
                    max_connections=10,
                ),
                headers={"User-Agent": self.settings.http_user_agent},
                follow_redirects=True,
            )
            self._owns_client = True

    async def disconnect(self) -> None:
        """Close HTTP client."""
        if self._client and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "HttpFetcher":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()

    @retry(
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        reraise=True,
    )
    async def fetch(
        self,
        url: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> HttpResponse:
        """
        Issue a GET request.

        Args:
            url: Absolute URL
            params: Query parameters
            headers: Extra request headers

        Returns:
            HttpResponse with status code and decoded body

        Raises:
            httpx.TimeoutException: After repeated timeouts
            httpx.NetworkError: After repeated connection failures
        """
        await self.connect()
        response = await self._client.get(url, params=params, headers=headers)

        if response.status_code >= 400:
            logger.warning("HTTP request failed", url=url, status_code=response.status_code)
        else:
            logger.debug("HTTP request completed", url=url, status_code=response.status_code)

        return HttpResponse(
            status_code=response.status_code,
            text=response.text,
            url=str(response.url),
        )


__all__ = ["HttpFetcher", "HttpResponse"]
