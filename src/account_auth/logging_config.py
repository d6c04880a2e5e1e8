"""
Logging setup: request IDs on every line, and credentials masked outside dev
"""
import logging
import re
import sys
import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

LOG_FORMAT = "%(asctime)s [%(env)s] [%(request_id)s] %(levelname)-8s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)


def get_request_id() -> Optional[str]:
    """Get current request ID from context"""
    return request_id_var.get()


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Bind a request ID for the duration of the request and echo it back"""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = request_id
        return response


class RequestContextFilter(logging.Filter):
    """Stamps env and the current request ID onto each record"""

    def __init__(self, env: str = "dev"):
        super().__init__()
        self.env = env

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        record.env = self.env
        return True


class CredentialRedactionFilter(logging.Filter):
    """
    Masks credentials this service handles before a record is written:
    verification/reset link tokens, Bearer values and signed session tokens.

    Emails stay readable; they are the key operators search by.
    """

    LINK_TOKEN_PATTERN = re.compile(r'((?:reset)?token=)[^&\s"\']+', re.IGNORECASE)
    BEARER_PATTERN = re.compile(r'(bearer\s+)[A-Za-z0-9_\-\.]+', re.IGNORECASE)
    JWT_PATTERN = re.compile(r'eyJ[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]*')

    MASK = "[REDACTED]"

    def redact(self, text: str) -> str:
        text = self.JWT_PATTERN.sub(self.MASK, text)
        text = self.BEARER_PATTERN.sub(rf'\1{self.MASK}', text)
        return self.LINK_TOKEN_PATTERN.sub(rf'\1{self.MASK}', text)

    def filter(self, record: logging.LogRecord) -> bool:
        # Render once so %-style args are covered too
        message = record.getMessage()
        redacted = self.redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(env: str = "dev", log_level: str = "INFO") -> logging.Logger:
    """
    Configure the root logger with one stdout handler.

    Args:
        env: Environment name (dev, test, staging, prod)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Dev keeps credentials visible: the dev mail provider logs verification
    links so they can be followed locally.
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    console_handler.addFilter(RequestContextFilter(env))
    if env != "dev":
        console_handler.addFilter(CredentialRedactionFilter())
    root_logger.addHandler(console_handler)

    # Third-party loggers
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return root_logger
