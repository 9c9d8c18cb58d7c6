"""
FastAPI exception handlers for structured error responses.

Converts RepoCommentsException instances into ``{"error_code", "message"}``
JSON bodies; debug information is only added in development mode.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import logging

from repocomments_backend.exceptions.exceptions import (
    RepoCommentsException,
    BadRequestException,
    InternalServerException,
)
from repocomments_backend.settings import settings


logger = logging.getLogger(__name__)


def _include_debug() -> bool:
    return (
        settings.DEBUG_MODE.lower() in ['dev', 'development', 'local']
        and not settings.DISABLE_API_DEBUG_INFO
    )


def _render(exc: RepoCommentsException, extra: dict | None = None) -> JSONResponse:
    include_debug = _include_debug()
    error_response = exc.to_error_response(include_debug=include_debug)

    response_data = {
        "error_code": error_response.error_code,
        "message": error_response.message,
    }
    if extra:
        response_data.update(extra)

    if include_debug and error_response.debug:
        response_data["debug"] = error_response.debug.model_dump(exclude_none=True)

    return JSONResponse(
        status_code=exc.status_code,
        content=response_data,
        headers=exc.headers or {},
    )


async def repocomments_exception_handler(request: Request, exc: RepoCommentsException) -> JSONResponse:
    """Handle RepoCommentsException instances."""
    log_error(request, exc)
    return _render(exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Convert Pydantic validation errors into a VAL_001 response."""
    errors = []
    for error in exc.errors():
        field = " -> ".join(str(x) for x in error["loc"][1:])  # Skip 'body' prefix
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    exception = BadRequestException(
        detail="Request validation failed",
        context={"validation_errors": errors},
    )

    logger.warning(f"Validation error on {request.method} {request.url.path}: {errors}")

    return _render(exception, {"details": {"validation_errors": errors}} if errors else None)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected exceptions and return a generic internal server error."""
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}",
        exc_info=exc,
    )

    exception = InternalServerException(
        context={
            "exception_type": type(exc).__name__,
            "exception_message": str(exc),
        }
    )
    response = _render(exception)
    response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return response


def log_error(request: Request, exception: RepoCommentsException) -> None:
    """Log error with level based on status code."""
    log_data = {
        "error_code": exception.error_code,
        "status_code": exception.status_code,
        "method": request.method,
        "path": request.url.path,
        "user_id": exception.user_id,
        "context": exception.context,
    }

    if exception.status_code >= 500:
        logger.error(f"Server error: {exception.error_code}", extra=log_data)
    elif exception.status_code >= 400:
        logger.warning(f"Client error: {exception.error_code}", extra=log_data)
    else:
        logger.info(f"Error: {exception.error_code}", extra=log_data)


def register_exception_handlers(app) -> None:
    """
    Register all exception handlers with the FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(RepoCommentsException, repocomments_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.info("Registered custom exception handlers")
