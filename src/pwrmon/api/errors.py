"""Exception handlers mapping the error taxonomy onto HTTP responses."""

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from pwrmon.api.responses import envelope
from pwrmon.utils.exceptions import (
    AuthenticationError,
    AuthorizationError,
    DuplicateKeyError,
    NotFoundError,
    PwrmonError,
    StoreUnavailableError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

STATUS_CODES: dict[type[PwrmonError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    AuthenticationError: status.HTTP_401_UNAUTHORIZED,
    AuthorizationError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    DuplicateKeyError: status.HTTP_409_CONFLICT,
    StoreUnavailableError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=envelope(message, success=False))


async def handle_domain_error(request: Request, exc: PwrmonError) -> JSONResponse:
    status_code = next(
        (code for error_type, code in STATUS_CODES.items() if isinstance(exc, error_type)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    if status_code >= 500:
        logger.error(
            "Request failed",
            path=request.url.path,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        if isinstance(exc, StoreUnavailableError):
            return _error_response(status_code, "Database unavailable")
        return _error_response(status_code, "Internal server error")
    return _error_response(status_code, str(exc))


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if not errors:
        return _error_response(status.HTTP_400_BAD_REQUEST, "Invalid request")
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    return _error_response(status.HTTP_400_BAD_REQUEST, message)


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", path=request.url.path, error=str(exc))
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PwrmonError, handle_domain_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, handle_request_validation)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, handle_unexpected)
