"""
Exception handlers rendering service errors as failure envelopes.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from mindnote.services.errors import ErrorKind, ServiceError
from mindnote.services.responses import ApiResponse, ErrorInfo

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.SERVICE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def error_response(error: ServiceError) -> JSONResponse:
    """Render a classified error as a JSON failure envelope."""
    envelope = ApiResponse(
        success=False,
        error=ErrorInfo(**error.to_dict()),
        request_id=error.request_id,
    )
    return JSONResponse(
        status_code=STATUS_BY_KIND[error.kind],
        content=envelope.to_dict(),
    )


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    return error_response(exc)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the ServiceError handler on an application."""
    app.add_exception_handler(ServiceError, service_error_handler)
