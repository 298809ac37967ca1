"""Async HTTP client used for RDB and artwork downloads."""

import asyncio
from typing import Any

import httpx
import structlog

log = structlog.stdlib.get_logger()

USER_AGENT = "rdb-metadata/0.1"


class HttpClientService:
    """httpx AsyncClient wrapper with retries and exponential backoff.

    Transport errors and 5xx responses are retried. A 429 response waits
    for its Retry-After delay when one is given. Any other 4xx is raised
    immediately.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
    ) -> None:
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
        )

    def _backoff(self, attempt: int) -> float:
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    def _retry_delay(self, error: httpx.HTTPError, attempt: int) -> float | None:
        """Seconds to wait before the next attempt, or None to give up."""
        if attempt >= self.max_retries:
            return None
        if not isinstance(error, httpx.HTTPStatusError):
            return self._backoff(attempt)

        status_code = error.response.status_code
        if status_code == 429:
            try:
                return float(error.response.headers["retry-after"])
            except (KeyError, ValueError):
                return self._backoff(attempt)
        if 400 <= status_code < 500:
            return None
        return self._backoff(attempt)

    async def get(self, url: str, headers: dict[str, str] | None = None) -> httpx.Response:
        """GET ``url``, retrying failures as described on the class.

        Raises:
            httpx.HTTPError: The last error once retries are exhausted
        """
        attempt = 0
        while True:
            log.debug("HTTP GET", url=url, attempt=attempt + 1, max_attempts=self.max_retries + 1)
            try:
                response = await self._client.get(url, headers=headers)
                response.raise_for_status()
            except (httpx.HTTPStatusError, httpx.RequestError) as e:
                log.warning(
                    "HTTP GET request failed",
                    url=url,
                    attempt=attempt + 1,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                delay = self._retry_delay(e, attempt)
                if delay is None:
                    log.error("Giving up on HTTP GET", url=url, attempts=attempt + 1)
                    raise
                log.info("Retrying after delay", url=url, delay=delay)
                await asyncio.sleep(delay)
                attempt += 1
                continue

            log.info("HTTP GET request successful", url=url, status_code=response.status_code, size=len(response.content))
            return response

    async def get_bytes(self, url: str) -> bytes:
        """GET a URL and return the full response body."""
        response = await self.get(url)
        return response.content

    async def close(self) -> None:
        await self._client.aclose()
        log.debug("HTTP client closed")

    async def __aenter__(self) -> "HttpClientService":
        return self

    async def __aexit__(self, exc_type: type[Exception] | None, exc_val: Exception | None, exc_tb: Any) -> None:
        await self.close()
