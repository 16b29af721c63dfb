"""
HTTP Backend implementation using httpx.

Provides async HTTP fetching with:
- Configurable headers
- Persistent connection pooling
- Typed errors for transport failures and non-2xx responses

Requests are never retried here.
"""

from __future__ import annotations

from datetime import datetime

import httpx

from .base import (
    Backend,
    BlockedError,
    FetchError,
    FetchResult,
    RequestSpec,
)


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# Status codes that indicate blocking
BLOCKED_STATUS_CODES = {403, 406, 418, 451}


class HttpBackend(Backend):
    """HTTP backend using httpx for async requests."""

    def __init__(
        self,
        timeout: float = 30.0,
        user_agent: str | None = None,
        default_headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize HTTP backend.

        Args:
            timeout: Default request timeout in seconds
            user_agent: Custom user agent
            default_headers: Default headers for all requests
            transport: Optional httpx transport (used by tests)
        """
        self.timeout = timeout
        self.user_agent = user_agent or DEFAULT_USER_AGENT
        self.transport = transport

        self.default_headers = {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "ko-KR,ko;q=0.9,en-US;q=0.8,en;q=0.7",
            "Accept-Encoding": "gzip, deflate",
            "Connection": "keep-alive",
            **(default_headers or {}),
        }

        self._client: httpx.AsyncClient | None = None

    @property
    def name(self) -> str:
        return "http"

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                headers=self.default_headers,
                transport=self.transport,
            )
        return self._client

    async def fetch(self, request: RequestSpec) -> FetchResult:
        """Fetch a URL once.

        Args:
            request: Request specification

        Returns:
            FetchResult with response data

        Raises:
            FetchError: On timeout, transport failure or non-2xx status
        """
        client = await self._ensure_client()
        headers = {**self.default_headers, **request.headers}
        timeout = request.timeout if request.timeout is not None else self.timeout

        start_time = datetime.utcnow()
        try:
            response = await client.request(
                request.method.upper(),
                request.url,
                headers=headers,
                params=request.params or None,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            raise FetchError(
                f"Timeout fetching {request.url}: {e}",
                url=request.url,
                page_no=request.page_no,
                cause=e,
            ) from e
        except httpx.HTTPError as e:
            raise FetchError(
                f"Transport error fetching {request.url}: {e}",
                url=request.url,
                page_no=request.page_no,
                cause=e,
            ) from e

        elapsed_ms = (datetime.utcnow() - start_time).total_seconds() * 1000

        if response.status_code in BLOCKED_STATUS_CODES:
            raise BlockedError(
                f"Request blocked with status {response.status_code}",
                url=str(response.url),
                status_code=response.status_code,
                page_no=request.page_no,
            )

        if not 200 <= response.status_code < 300:
            raise FetchError(
                f"HTTP {response.status_code} from {response.url}",
                url=str(response.url),
                status_code=response.status_code,
                page_no=request.page_no,
            )

        return FetchResult(
            url=request.url,
            final_url=str(response.url),
            status_code=response.status_code,
            html=response.text,
            headers=dict(response.headers),
            elapsed_ms=elapsed_ms,
            page_no=request.page_no,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
