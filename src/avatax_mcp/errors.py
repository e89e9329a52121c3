from __future__ import annotations

from typing import Any


class AvaTaxError(Exception):
    """Base class for every failure surfaced by the AvaTax client."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(AvaTaxError, ValueError):
    """Caller input is missing or malformed. Raised before any network call."""


class NotFoundError(AvaTaxError):
    pass


class AuthError(AvaTaxError):
    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        super().__init__(message)


class RateLimitError(AvaTaxError):
    def __init__(self, message: str, retry_after: str | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(message)


class RequestTimeoutError(AvaTaxError, TimeoutError):
    def __init__(self, timeout_ms: int) -> None:
        self.timeout_ms = timeout_ms
        super().__init__(f"Request timeout after {timeout_ms}ms")


class UpstreamError(AvaTaxError):
    def __init__(
        self,
        status_code: int,
        message: str,
        details: list[dict[str, Any]] | None = None,
    ) -> None:
        self.status_code = status_code
        self.details = details or []
        super().__init__(message)


class NetworkError(AvaTaxError):
    pass
