from __future__ import annotations

from typing import Optional


class ExecutorError(Exception):
    """Base for failures captured into executor state."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class RequestError(ExecutorError):
    """The server answered with a non-success status."""

    def __init__(self, status_code: int, message: Optional[str] = None) -> None:
        super().__init__(message or f"HTTP error! status: {status_code}")
        self.status_code = status_code


class NetworkError(ExecutorError):
    """The transport failed before a response arrived."""


class ResponseFormatError(ExecutorError):
    """The response body was not valid JSON."""


class Cancelled(ExecutorError):
    """A newer call or teardown superseded the request. Never shown to users."""

    def __init__(self, message: str = "Request cancelled") -> None:
        super().__init__(message)


class AuthenticationRequired(ExecutorError):
    def __init__(self, message: str = "Login required") -> None:
        super().__init__(message)
