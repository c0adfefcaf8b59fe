"""
Error taxonomy for the request governance layer.
Every failure surfaced to callers is an ApiError subclass with a stable kind.
to_dict() renders the same {"error", "error_description"} shape the backend uses.
"""
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    NOT_AUTHENTICATED = "not_authenticated"
    SESSION_EXPIRED = "session_expired"
    VALIDATION = "validation"
    CONFLICT = "conflict"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    SERVER_UNAVAILABLE = "server_unavailable"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    MALFORMED_RESPONSE = "malformed_response"
    UNKNOWN = "unknown"


# User-facing fallbacks when the server supplied no message
CANONICAL_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.NOT_AUTHENTICATED: "You are not logged in.",
    ErrorKind.SESSION_EXPIRED: "Your session has expired. Please log in again.",
    ErrorKind.VALIDATION: "Invalid request. Please check your input and try again.",
    ErrorKind.CONFLICT: "A conflict occurred. This email may already be registered.",
    ErrorKind.RATE_LIMITED: "Too many requests. Please wait a moment and try again.",
    ErrorKind.NOT_FOUND: "The requested resource was not found.",
    ErrorKind.FORBIDDEN: "Access denied. You do not have permission to perform this action.",
    ErrorKind.SERVER_UNAVAILABLE: "Service temporarily unavailable. Please try again later.",
    ErrorKind.NETWORK_ERROR: "Network error. Please check your internet connection and try again.",
    ErrorKind.TIMEOUT: "Request timed out. Please try again.",
    ErrorKind.MALFORMED_RESPONSE: "The server returned a response that could not be read.",
    ErrorKind.UNKNOWN: "Request failed.",
}


class ApiError(Exception):
    """Base class. kind is fixed per subclass; status_code is set for HTTP-level errors."""

    kind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or CANONICAL_MESSAGES[self.kind]
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.kind.value, "error_description": self.message}
        if self.status_code is not None:
            body["status_code"] = self.status_code
        return body


class NotAuthenticated(ApiError):
    kind = ErrorKind.NOT_AUTHENTICATED


class SessionExpired(ApiError):
    kind = ErrorKind.SESSION_EXPIRED


class ValidationError(ApiError):
    kind = ErrorKind.VALIDATION


class ConflictError(ApiError):
    kind = ErrorKind.CONFLICT


class RateLimitedError(ApiError):
    kind = ErrorKind.RATE_LIMITED


class NotFoundError(ApiError):
    kind = ErrorKind.NOT_FOUND


class ForbiddenError(ApiError):
    kind = ErrorKind.FORBIDDEN


class ServerUnavailableError(ApiError):
    kind = ErrorKind.SERVER_UNAVAILABLE


class NetworkError(ApiError):
    kind = ErrorKind.NETWORK_ERROR


class RequestTimeout(ApiError):
    kind = ErrorKind.TIMEOUT


class MalformedResponse(ApiError):
    kind = ErrorKind.MALFORMED_RESPONSE


class UnknownError(ApiError):
    kind = ErrorKind.UNKNOWN


_STATUS_ERRORS: dict[int, type[ApiError]] = {
    400: ValidationError,
    403: ForbiddenError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationError,
    429: RateLimitedError,
}


def error_for_status(status_code: int, message: str | None = None, details: dict | None = None) -> ApiError:
    """
    Map an HTTP status to an ApiError. Server-supplied message wins; otherwise the canonical
    per-kind message (or "Request failed with status N" for unmapped codes).
    """
    if status_code in _STATUS_ERRORS:
        cls = _STATUS_ERRORS[status_code]
    elif 500 <= status_code <= 599:
        cls = ServerUnavailableError
    else:
        cls = UnknownError
        if not message:
            message = f"Request failed with status {status_code}"
    return cls(message, status_code=status_code, details=details)
