"""
Auth error taxonomy and exception handlers with request ID support
Every failure is rendered as the flat body: { success: false, message }
"""
from enum import Enum
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
from typing import Optional

from .logging_config import get_request_id

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """Failure kinds a flow can end in"""
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    BAD_CREDENTIALS = "BAD_CREDENTIALS"
    INVALID_TOKEN = "INVALID_TOKEN"
    EXPIRED_TOKEN = "EXPIRED_TOKEN"
    INVALID_LINK = "INVALID_LINK"
    EXPIRED_LINK = "EXPIRED_LINK"
    UNAUTHORIZED = "UNAUTHORIZED"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    UNAVAILABLE = "UNAVAILABLE"
    INTERNAL = "INTERNAL"


STATUS_BY_KIND = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.BAD_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.INVALID_TOKEN: status.HTTP_400_BAD_REQUEST,
    ErrorKind.EXPIRED_TOKEN: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_LINK: status.HTTP_400_BAD_REQUEST,
    ErrorKind.EXPIRED_LINK: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.UPSTREAM_ERROR: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class AuthError(Exception):
    """A flow ended in a user-facing failure"""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    def __repr__(self) -> str:
        return f"AuthError({self.kind.value}, {self.message!r})"


class UpstreamError(AuthError):
    """The identity provider could not be reached or answered with an error"""

    def __init__(self, message: str = "Google authentication failed"):
        super().__init__(ErrorKind.UPSTREAM_ERROR, message)


def error_body(message: str) -> dict:
    """Response body shared by every failure"""
    return {"success": False, "message": message}


def _error_response(status_code: int, message: str, request_id: Optional[str]) -> JSONResponse:
    headers = {"X-Request-ID": request_id} if request_id else None
    return JSONResponse(status_code=status_code, content=error_body(message), headers=headers)


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render flow failures"""
    request_id = get_request_id()
    logger.warning(
        f"{exc.kind.value} on {request.url.path}: {exc.message}",
        extra={"request_id": request_id, "path": request.url.path}
    )
    return _error_response(exc.status_code, exc.message, request_id)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions (unknown routes, wrong methods) with the same body shape"""
    request_id = get_request_id()
    message = str(exc.detail) if exc.detail else f"HTTP {exc.status_code} error"
    logger.warning(
        f"HTTP {exc.status_code}: {message}",
        extra={"request_id": request_id, "path": request.url.path}
    )
    return _error_response(exc.status_code, message, request_id)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Undecodable request bodies are a VALIDATION failure"""
    request_id = get_request_id()
    errors = exc.errors()
    detail = "; ".join(f"{err.get('loc')}: {err.get('msg')}" for err in errors)
    logger.warning(
        f"Validation error: {detail}",
        extra={"request_id": request_id, "path": request.url.path}
    )
    return _error_response(status.HTTP_400_BAD_REQUEST, "Missing Details", request_id)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything unexpected becomes an INTERNAL failure"""
    request_id = get_request_id()

    # Don't expose internal error details outside development
    config = getattr(request.app.state, "config", None)
    message = "Internal server error"
    if config is not None and config.is_dev:
        message = f"Internal server error: {exc}"

    logger.error(
        f"Unhandled exception: {exc}",
        exc_info=True,
        extra={"request_id": request_id, "path": request.url.path}
    )
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, message, request_id)
