"""
Service layer exceptions and the error taxonomy mapper.

Every failure leaving the remote-call core is a ServiceError carrying one
ErrorKind from a closed set. Raw signals (HTTP status, httpx transport
errors, timeouts) are classified exactly once by classify_error().
"""

import asyncio
from enum import Enum
from typing import Any

import httpx


class ErrorKind(str, Enum):
    """Closed set of domain error kinds."""

    VALIDATION = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    RATE_LIMITED = "RATE_LIMITED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    INTERNAL = "INTERNAL_ERROR"


class ServiceError(Exception):
    """Base exception for service layer errors."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
        request_id: str | None = None,
    ):
        self.message = message
        self.details = details
        self.status_code = status_code
        self.request_id = request_id
        super().__init__(message)

    @property
    def code(self) -> str:
        return self.kind.value

    def to_dict(self) -> dict[str, Any]:
        """Convert to the `error` member of a failure envelope."""
        data: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            data["details"] = self.details
        return data


class ValidationError(ServiceError):
    """Request was rejected as invalid (400)."""

    kind = ErrorKind.VALIDATION


class UnauthorizedError(ServiceError):
    """Missing or invalid credentials (401)."""

    kind = ErrorKind.UNAUTHORIZED


class ForbiddenError(ServiceError):
    """Credentials valid but not allowed (403)."""

    kind = ErrorKind.FORBIDDEN


class NotFoundError(ServiceError):
    """Requested resource does not exist (404)."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str = "Resource", **kwargs: Any):
        super().__init__(f"{resource} not found", **kwargs)


class ConflictError(ServiceError):
    """Resource state conflict (409)."""

    kind = ErrorKind.CONFLICT


class RateLimitError(ServiceError):
    """Rate limit exceeded (429)."""

    kind = ErrorKind.RATE_LIMITED


class ServiceUnavailableError(ServiceError):
    """Service is temporarily unavailable: 5xx, network failure or timeout."""

    kind = ErrorKind.SERVICE_UNAVAILABLE

    def __init__(self, message: str, timed_out: bool = False, **kwargs: Any):
        self.timed_out = timed_out
        super().__init__(message, **kwargs)


class HTTPStatusFailure(Exception):
    """Raw non-success response, before classification."""

    def __init__(
        self,
        status_code: int,
        message: str,
        details: Any = None,
    ):
        self.status_code = status_code
        self.message = message
        self.details = details
        super().__init__(f"HTTP {status_code}: {message}")


_STATUS_ERRORS: dict[int, type[ServiceError]] = {
    400: ValidationError,
    401: UnauthorizedError,
    403: ForbiddenError,
    409: ConflictError,
    429: RateLimitError,
}


def classify_error(
    error: BaseException,
    context: str | None = None,
    request_id: str | None = None,
) -> ServiceError:
    """
    Map a raw failure to a ServiceError.

    Args:
        error: The exception raised while executing a call
        context: Endpoint or resource name, used for not-found messages
        request_id: Request id to attach to the classified error

    Returns:
        The classified error. ServiceError instances are returned unchanged.
    """
    if isinstance(error, ServiceError):
        return error

    if isinstance(error, HTTPStatusFailure):
        return _classify_status(error, context, request_id)

    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError)):
        return ServiceUnavailableError(
            "Request timeout", timed_out=True, request_id=request_id
        )

    if isinstance(error, httpx.TransportError):
        return ServiceUnavailableError(
            "Network error occurred",
            details={"reason": str(error) or type(error).__name__},
            request_id=request_id,
        )

    message = str(error)
    if "timeout" in message.lower():
        return ServiceUnavailableError(
            "Request timeout", timed_out=True, request_id=request_id
        )

    return ServiceError(
        message or "An unexpected error occurred",
        details={"originalError": repr(error), "context": context},
        request_id=request_id,
    )


def _classify_status(
    failure: HTTPStatusFailure,
    context: str | None,
    request_id: str | None,
) -> ServiceError:
    status = failure.status_code
    details = failure.details if isinstance(failure.details, dict) else None
    if failure.details is not None and details is None:
        details = {"details": failure.details}

    if status == 404:
        return NotFoundError(
            context or "Resource",
            details=details,
            status_code=status,
            request_id=request_id,
        )

    error_cls = _STATUS_ERRORS.get(status)
    if error_cls is not None:
        return error_cls(
            failure.message,
            details=details,
            status_code=status,
            request_id=request_id,
        )

    if 500 <= status < 600:
        return ServiceUnavailableError(
            failure.message,
            details=details,
            status_code=status,
            request_id=request_id,
        )

    return ServiceError(
        failure.message,
        details={"originalError": str(failure), **(details or {})},
        status_code=status,
        request_id=request_id,
    )
