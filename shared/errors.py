"""
Shared error handling for the content access layer.
"""

from datetime import datetime, timezone
from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Normalized error shape handed to callers."""

    code: str
    message: str
    status_code: int = 0
    details: Optional[str] = None
    timestamp: str


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class AccessLayerException(Exception):
    """Base exception for the content access layer."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        self.timestamp = _utc_timestamp()
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=str(self.details) if self.details else None,
            timestamp=self.timestamp,
        )


class ConfigurationError(AccessLayerException):
    """Invalid client configuration."""

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class ValidationError(AccessLayerException):
    """Payload rejected locally, before any network call."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class SnapshotError(AccessLayerException):
    """A persisted store snapshot could not be read or migrated."""

    def __init__(self, message: str = "Invalid snapshot", details: Optional[Dict[str, Any]] = None):
        super().__init__("SNAPSHOT_ERROR", message, details)


class ApiError(AccessLayerException):
    """
    Failure of a remote operation, classified at the transport boundary.

    ``status_code`` is 0 when no response was received.
    """

    code = "API_ERROR"

    def __init__(self, message: str, status_code: int = 0, details: Optional[str] = None):
        super().__init__(self.code, message)
        self.status_code = status_code
        self.api_details = details

    @property
    def retryable(self) -> bool:
        return True

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            code=self.code,
            message=self.message,
            status_code=self.status_code,
            details=self.api_details,
            timestamp=self.timestamp,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code}, message={self.message!r})"


class NetworkError(ApiError):
    """No response reached the client (connection failure, timeout)."""

    code = "NETWORK_ERROR"

    def __init__(self, message: str = "Network error - please check your connection", details: Optional[str] = None):
        super().__init__(message, status_code=0, details=details)


class RequestCancelledError(ApiError):
    """The caller abandoned the request through its cancellation signal."""

    code = "REQUEST_CANCELLED"

    def __init__(self, message: str = "Request cancelled", details: Optional[str] = None):
        super().__init__(message, status_code=0, details=details)

    @property
    def retryable(self) -> bool:
        return False


class HttpError(ApiError):
    """A response with an error status was received."""

    code = "HTTP_ERROR"


class ClientError(HttpError):
    """4xx response. Treated as a caller fault and never retried."""

    code = "CLIENT_ERROR"

    @property
    def retryable(self) -> bool:
        return False


class ServerError(HttpError):
    """5xx response. Retried up to the attempt budget."""

    code = "SERVER_ERROR"


def classify_http_error(status_code: int, message: Optional[str] = None, details: Optional[str] = None) -> HttpError:
    """Build the error type matching an HTTP status."""
    message = message or f"HTTP {status_code} Error"
    if 400 <= status_code < 500:
        return ClientError(message, status_code=status_code, details=details)
    if status_code >= 500:
        return ServerError(message, status_code=status_code, details=details)
    return HttpError(message, status_code=status_code, details=details)


def format_api_error(error: BaseException) -> str:
    """Format any error for display."""
    if isinstance(error, AccessLayerException):
        return error.message
    message = str(error)
    return message or "An unexpected error occurred"


def get_error_status_code(error: BaseException) -> int:
    if isinstance(error, ApiError):
        return error.status_code
    return 0


def is_network_error(error: BaseException) -> bool:
    return isinstance(error, ApiError) and error.status_code == 0


def is_auth_error(error: BaseException) -> bool:
    return get_error_status_code(error) == 401


def is_authorization_error(error: BaseException) -> bool:
    return get_error_status_code(error) == 403


def is_not_found_error(error: BaseException) -> bool:
    return get_error_status_code(error) == 404


def is_server_error(error: BaseException) -> bool:
    return get_error_status_code(error) >= 500
