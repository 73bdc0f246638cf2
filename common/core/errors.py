"""
Error taxonomy shared by the management API and the redirect service.

Every error carries the HTTP status it maps to and a machine-readable code.
The JSON handlers registered here render the API envelope; the redirect
route renders its own HTML pages from the same exceptions.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from common.core.config import settings

logger = logging.getLogger(__name__)


class ShortenerError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str = "Internal server error", status_code: int = None, code: str = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code


class ValidationError(ShortenerError):
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthenticationError(ShortenerError):
    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class ForbiddenError(ShortenerError):
    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "Not allowed"):
        super().__init__(message)


class NotFoundError(ShortenerError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message)


class ConflictError(ShortenerError):
    status_code = 409
    code = "CONFLICT"

    def __init__(self, message: str = "Resource already exists"):
        super().__init__(message)


class ExpiredError(ShortenerError):
    status_code = 410
    code = "LINK_EXPIRED"

    def __init__(self, message: str = "This short link has expired and is no longer available."):
        super().__init__(message)


class DisabledError(ShortenerError):
    status_code = 410
    code = "LINK_DISABLED"

    def __init__(self, message: str = "This short link has been disabled by the administrator."):
        super().__init__(message)


class InternalError(ShortenerError):
    pass


class StoreUnavailableError(InternalError):
    """The backing database could not be reached or timed out."""
    code = "STORE_UNAVAILABLE"


def error_body(message: str, code: str = None, **extra) -> dict:
    body = {"success": False, "error": message}
    if code:
        body["code"] = code
    body.update(extra)
    return body


async def shortener_error_handler(request: Request, exc: ShortenerError):
    message = exc.message
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        if not settings.debug:
            message = "Internal server error"
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message, exc.code),
        headers=headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=error_body("Validation failed", ValidationError.code, details=details),
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc!r}")
    extra = {"message": str(exc)} if settings.debug else {}
    return JSONResponse(
        status_code=500,
        content=error_body("Internal server error", InternalError.code, **extra),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ShortenerError, shortener_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
