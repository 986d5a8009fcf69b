from __future__ import annotations

from typing import Any, Optional


class GatewayError(Exception):
    """Base class for every failure surfaced by a gateway client."""

    default_message = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        status_code: Optional[int] = None,
        details: Any = None,
    ) -> None:
        super().__init__(message or self.default_message)
        self.status_code = status_code
        self.details = details


class GatewayConnectionError(GatewayError):
    default_message = "Cannot connect to server. Please check if the server is running."


class GatewayTimeoutError(GatewayError):
    default_message = "Request took too long. Please try again."

    def __init__(
        self,
        message: str | None = None,
        status_code: Optional[int] = 408,
        details: Any = None,
        *,
        cancelled: bool = False,
    ) -> None:
        super().__init__(message, status_code, details)
        self.cancelled = cancelled


class GatewayValidationError(GatewayError):
    default_message = "The request was rejected by the server"


class GatewayNotFoundError(GatewayError):
    default_message = "Resource not found"


class GatewayServerError(GatewayError):
    default_message = "Internal server error"


class GatewayUnknownError(GatewayError):
    pass


def _body_message(body: Any) -> Optional[str]:
    if not isinstance(body, dict):
        return None
    for key in ("detail", "error", "message"):
        value = body.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def normalize_http_error(status_code: int, body: Any = None) -> GatewayError:
    """Map an HTTP error status onto the gateway error taxonomy."""

    message = _body_message(body)
    if status_code == 404:
        return GatewayNotFoundError(message, status_code, body)
    if status_code == 408:
        return GatewayTimeoutError(message, status_code, body)
    if 400 <= status_code < 500:
        return GatewayValidationError(message, status_code, body)
    if status_code >= 500:
        return GatewayServerError(message, status_code, body)
    return GatewayUnknownError(message or f"Unexpected status {status_code}", status_code, body)


class StorageError(Exception):
    """Raised when a session cannot be written to or removed from storage."""


class SessionBusyError(Exception):
    """Raised when an action arrives while the session is handling another one."""


class SessionNotFoundError(Exception):
    """Raised when a session id is not known to the service."""


class PlanNotFoundError(Exception):
    """Raised when a plan id is not part of the session's current plans."""
