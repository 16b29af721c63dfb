"""Backend implementations for fetching catalog pages."""

from .base import (
    Backend,
    BackendError,
    BlockedError,
    FetchError,
    FetchResult,
    RequestSpec,
)
from .http_backend import HttpBackend

__all__ = [
    "Backend",
    "RequestSpec",
    "FetchResult",
    "BackendError",
    "FetchError",
    "BlockedError",
    "HttpBackend",
]
