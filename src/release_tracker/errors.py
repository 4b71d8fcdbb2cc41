"""Error taxonomy for backend calls.

Every failure that crosses the HTTP client boundary is one of these. The
``recoverable`` flag drives the cache retry policy: recoverable errors are
retried, the rest are surfaced straight away.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    NETWORK_ERROR = "NETWORK_ERROR"
    SERVER_ERROR = "SERVER_ERROR"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFLICT = "CONFLICT"
    BACKEND_UNAVAILABLE = "BACKEND_UNAVAILABLE"


class ReleaseTrackerError(Exception):
    """Base error carrying a machine-readable code and a retry hint."""

    def __init__(self, code: ErrorCode, message: str, recoverable: bool) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.recoverable = recoverable

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!s}, message={self.message!r})"


class NetworkError(ReleaseTrackerError):
    """Transport failure or timeout."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.NETWORK_ERROR, message, recoverable=True)


class ServerError(ReleaseTrackerError):
    """5xx response, or a response body that could not be understood."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(ErrorCode.SERVER_ERROR, message, recoverable=True)
        self.status_code = status_code


class NotFoundError(ReleaseTrackerError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.NOT_FOUND, message, recoverable=False)


class ValidationError(ReleaseTrackerError):
    """4xx response other than 404 and 409."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(ErrorCode.VALIDATION_ERROR, message, recoverable=False)
        self.status_code = status_code


class ConflictError(ReleaseTrackerError):
    """409 response, e.g. following an artist that is already followed."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.CONFLICT, message, recoverable=False)


class BackendUnavailableError(ReleaseTrackerError):
    """Raised instead of calling the network while the health gate is closed."""

    def __init__(self, message: str = "Backend is not connected") -> None:
        super().__init__(ErrorCode.BACKEND_UNAVAILABLE, message, recoverable=False)
