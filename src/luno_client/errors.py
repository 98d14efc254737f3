from __future__ import annotations
from typing import Any

RATE_LIMIT_MARKERS = ("429", "ErrTooManyRequests")


def is_rate_limit_code(error_code: Any) -> bool:
    """True when an API error code signals a rate-limit rejection."""
    if error_code is None:
        return False
    code = str(error_code)
    return any(marker in code for marker in RATE_LIMIT_MARKERS)


class LunoClientError(Exception):
    """Base exception for all client errors."""

    def __init__(self, message: str, *, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class LunoTransportError(LunoClientError):
    """Network/TLS/DNS failure before any response was received."""


class LunoMalformedResponseError(LunoClientError):
    """Response body could not be parsed as the expected JSON."""

    def __init__(
        self,
        status_code: int,
        body: str,
        *,
        method: str | None = None,
        path: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(f"luno API error {status_code}: {body}", cause=cause)
        self.status_code = status_code
        self.body = body
        self.method = method
        self.path = path


class LunoAPIError(LunoClientError):
    """Well-formed error payload returned by the exchange."""

    def __init__(
        self,
        error_code: str | None,
        error: str,
        *,
        status_code: int | None = None,
        method: str | None = None,
        path: str | None = None,
        detail: str = "",
    ):
        label = error_code if error_code is not None else status_code
        super().__init__(f"luno API error {label}: {detail}{error}")
        self.error_code = error_code
        self.error = error
        self.status_code = status_code
        self.method = method
        self.path = path


class LunoRateLimitError(LunoAPIError):
    """Request rejected for exceeding the exchange's rate limits."""

    def __init__(self, error_code: str | None, error: str, *, api_call_rate: int, **kwargs: Any) -> None:
        super().__init__(error_code, error, detail=f"({api_call_rate}) ", **kwargs)
        self.api_call_rate = api_call_rate
