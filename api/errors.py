"""Error taxonomy and the JSON error envelope."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Initialize logger
logger = structlog.get_logger(__name__)


class ApiError(HTTPException):
    """
    Base class for errors raised by request handlers.

    Carries a human readable ``message`` and an ``error`` description that
    end up in the ``{message, error}`` response body.
    """

    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal_error"

    def __init__(self, message: str, error: str | None = None, headers: dict | None = None):
        super().__init__(status_code=self.status_code_default, detail=message, headers=headers)
        self.message = message
        self.error = error or self.code


class ValidationError(ApiError):
    status_code_default = status.HTTP_400_BAD_REQUEST
    code = "validation_error"


class AuthenticationError(ApiError):
    status_code_default = status.HTTP_401_UNAUTHORIZED
    code = "authentication_error"

    def __init__(self, message: str, error: str | None = None):
        super().__init__(message, error, headers={"WWW-Authenticate": "Bearer"})


class AuthorizationError(ApiError):
    status_code_default = status.HTTP_403_FORBIDDEN
    code = "authorization_error"


class NotFoundError(ApiError):
    status_code_default = status.HTTP_404_NOT_FOUND
    code = "not_found"


class ConflictError(ApiError):
    # Duplicates found by a handler's pre-check answer 400, like other bad input
    status_code_default = status.HTTP_400_BAD_REQUEST
    code = "conflict"


class InternalError(ApiError):
    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal_error"


@contextmanager
def failure_boundary(message: str, **context) -> Iterator[None]:
    """
    Convert unexpected failures inside a handler into an InternalError.

    HTTP errors raised on purpose pass through untouched; anything else is
    logged and reported as a 500 echoing the failure description.
    """
    try:
        yield
    except HTTPException:
        raise
    except Exception as e:
        logger.error(
            "request_failed",
            failure=message,
            error=str(e),
            error_type=type(e).__name__,
            **context,
        )
        raise InternalError(message, error=str(e)) from e


def _error_body(message: str, error: str) -> dict:
    return {"message": message, "error": error}


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTP errors as ``{message, error}``."""
    if isinstance(exc, ApiError):
        body = _error_body(exc.message, exc.error)
    else:
        body = _error_body(str(exc.detail), "http_error")
    return JSONResponse(body, status_code=exc.status_code, headers=getattr(exc, "headers", None))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report missing or malformed input as 400 rather than 422."""
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))

    logger.info("request_validation_failed", path=request.url.path, problems=problems)

    return JSONResponse(
        _error_body("Invalid or missing request fields", "; ".join(problems)),
        status_code=status.HTTP_400_BAD_REQUEST,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort for failures raised outside a failure boundary."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
    )
    return JSONResponse(
        _error_body("Internal server error", str(exc)),
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def install_exception_handlers(app: FastAPI) -> None:
    """Register the error envelope handlers on the application."""
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
