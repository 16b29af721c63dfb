"""
Fetch backend contract.

A backend turns one ``RequestSpec`` into one ``FetchResult`` or raises a
``FetchError``. The catalog code never talks to an HTTP client directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class RequestSpec:
    """Specification for an HTTP request."""

    url: str
    method: str = "GET"
    params: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None
    page_no: int | None = None  # listing page, for log context


@dataclass
class FetchResult:
    """A successful (2xx) response body."""

    url: str
    final_url: str
    status_code: int
    html: str
    headers: dict[str, str]
    elapsed_ms: float
    fetched_at: datetime = field(default_factory=datetime.utcnow)
    page_no: int | None = None


class Backend(ABC):
    """Something that can fetch a page."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def fetch(self, request: RequestSpec) -> FetchResult:
        """Perform one request.

        Raises:
            FetchError: On timeout, transport failure or non-2xx status
        """

    async def close(self) -> None:
        """Release connections; the backend may be reused afterwards."""

    async def __aenter__(self) -> "Backend":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


class BackendError(Exception):
    """Base exception for backend errors."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        cause: Exception | None = None,
        page_no: int | None = None,
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.cause = cause
        self.page_no = page_no


class FetchError(BackendError):
    """A listing page could not be retrieved."""


class BlockedError(FetchError):
    """The source refused the request (403 and similar)."""
