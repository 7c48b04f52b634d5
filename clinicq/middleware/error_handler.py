"""Error handling middleware."""

import structlog
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from clinicq.core.exceptions import AppException

logger = structlog.get_logger(__name__)


def error_body(request: Request, error: str, message: str, **extra) -> dict:
    """Build the failure envelope shared by every handler."""
    return {
        "success": False,
        "error": error,
        "message": message,
        "path": str(request.url),
        **extra,
    }


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Domain errors keep their status code and are named after their class."""
    error = type(exc).__name__
    logger.info(
        "request_rejected",
        path=request.url.path,
        error=error,
        status_code=exc.status_code,
        reason=exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, error, exc.message),
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Framework errors such as unknown routes or wrong methods."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, "HTTPException", str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Handle validation errors.

    Missing fields are reported as ``MissingFields``, everything else as
    ``ValidationError``; both are 400.

    Returns:
        JSON error response with validation details
    """
    errors = exc.errors()
    if any(e.get("type") == "missing" for e in errors):
        error, message = "MissingFields", "Missing required fields"
    else:
        error, message = "ValidationError", "Request validation failed"

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(request, error, message, details=jsonable_encoder(errors)),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions.

    Args:
        request: Request object
        exc: Exception

    Returns:
        JSON error response
    """
    logger.error("unhandled_exception", path=request.url.path, error=str(exc), exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(request, "InternalServerError", "An unexpected error occurred"),
    )
