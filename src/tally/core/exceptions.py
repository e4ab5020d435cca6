"""Domain errors and exception handlers with request_id in responses.

Every error that leaves a service is one of the kinds below. Handlers render
them as ``{"detail": ..., "request_id": ...}``; anything else becomes a 500
with a fixed message so no internal detail reaches the client.
"""

import functools
from collections.abc import Awaitable, Callable
from typing import Any, ParamSpec, TypeVar

from asgi_correlation_id import correlation_id
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.tally.core.logging import get_logger

logger = get_logger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"
REGISTRATION_FAILED_MESSAGE = "Registration could not be completed"


class TallyError(Exception):
    """Base class for errors that are safe to render to the client."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = INTERNAL_ERROR_MESSAGE

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(TallyError):
    """Malformed or missing input. Message is passed through verbatim."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class AuthenticationError(TallyError):
    """Bad credentials or bad token. Message is deliberately generic."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid email or password"


class AuthorizationError(TallyError):
    """Caller proved identity but is not allowed (deactivated, wrong role)."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFoundError(TallyError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class RateLimitError(TallyError):
    """Too many failed attempts; carries a retry hint in seconds."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = (
        "Account temporarily locked due to too many failed login attempts. "
        "Please try again later."
    )

    def __init__(self, retry_after: int, message: str | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class ConflictError(TallyError):
    """Duplicate resource. Rendered as a generic validation failure."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = REGISTRATION_FAILED_MESSAGE

    def __init__(self, reason: str | None = None):
        # The reason is for logs only; the client always sees the generic message
        super().__init__(self.default_message)
        self.reason = reason


class InternalError(TallyError):
    """Storage or crypto failure. The client never sees the cause."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = INTERNAL_ERROR_MESSAGE

    def __init__(self, message: str | None = None):
        super().__init__(INTERNAL_ERROR_MESSAGE)
        self.cause_message = message


P = ParamSpec("P")
R = TypeVar("R")


def service_boundary(
    operation: Callable[P, Awaitable[R]],
) -> Callable[P, Awaitable[R]]:
    """Map every exception leaving a service method to a TallyError.

    The wrapped method must be bound to an object exposing ``session``; the
    session is rolled back before the error propagates.
    """

    @functools.wraps(operation)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return await operation(*args, **kwargs)
        except Exception as e:
            service = args[0] if args else None
            session = getattr(service, "session", None)
            if session is not None:
                await session.rollback()
            if isinstance(e, TallyError):
                raise
            logger.exception(
                "Unhandled error in service operation",
                operation=operation.__qualname__,
                error_type=type(e).__name__,
            )
            raise InternalError(str(e)) from e

    return wrapper


def _error_response(
    status_code: int, detail: Any, headers: dict[str, str] | None = None, **extra: Any
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "request_id": correlation_id.get(), **extra},
        headers=headers,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Configure exception handlers that include request_id in responses."""

    @app.exception_handler(TallyError)
    async def tally_error_handler(request: Request, exc: TallyError) -> JSONResponse:
        if isinstance(exc, RateLimitError):
            return _error_response(
                exc.status_code,
                exc.message,
                headers={"Retry-After": str(exc.retry_after)},
                retryAfter=exc.retry_after,
            )
        if isinstance(exc, InternalError):
            logger.error(
                "Internal error",
                path=request.url.path,
                cause=exc.cause_message,
            )
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return _error_response(status.HTTP_400_BAD_REQUEST, "Invalid request body")

    @app.exception_handler(StarletteHTTPException)
    async def starlette_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return _error_response(exc.status_code, exc.detail, headers=exc.headers)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return _error_response(exc.status_code, exc.detail, headers=exc.headers)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "Unhandled exception",
            exc_info=exc,
            path=request.url.path,
        )
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            INTERNAL_ERROR_MESSAGE,
        )
