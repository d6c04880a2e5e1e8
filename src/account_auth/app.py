"""
FastAPI application factory for the account auth service
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth import Clock, PasswordHasher, SessionValidator, TokenIssuer, utc_now
from .auth_routes import router as auth_router
from .config import Config, get_config
from .database import create_database_engine, init_db
from .exceptions import (
    AuthError,
    auth_error_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from .logging_config import RequestIDMiddleware
from .notifications import Notifier, create_notifier
from .oauth import GoogleOAuthClient
from .oauth_routes import router as oauth_router

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[Config] = None,
    clock: Clock = utc_now,
    notifier: Optional[Notifier] = None,
    google_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the app and connect the user store.

    Store connection errors propagate: the process must not serve traffic
    without a store.
    """
    config = config or get_config()

    engine = create_database_engine(config.DATABASE_URL)
    try:
        session_factory = init_db(engine)
    except Exception as e:
        logger.critical(f"Database initialization failed: {e}", exc_info=True)
        engine.dispose()
        raise

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        engine.dispose()
        logger.info("Database engine disposed")

    app = FastAPI(title="Account Auth API", lifespan=lifespan)

    app.state.config = config
    app.state.clock = clock
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.password_hasher = PasswordHasher(rounds=config.BCRYPT_ROUNDS)
    app.state.token_issuer = TokenIssuer(config.JWT_SECRET, config.JWT_ALGORITHM, clock=clock)
    app.state.session_validator = SessionValidator(config.JWT_SECRET, config.JWT_ALGORITHM, clock=clock)
    app.state.notifier = notifier or create_notifier(config)
    app.state.google_client = None
    if config.google_oauth_enabled:
        app.state.google_client = GoogleOAuthClient(
            client_id=config.GOOGLE_CLIENT_ID,
            client_secret=config.GOOGLE_CLIENT_SECRET,
            redirect_uri=config.GOOGLE_REDIRECT_URI,
            timeout=config.OAUTH_HTTP_TIMEOUT,
            transport=google_transport,
        )
    else:
        logger.info("Google OAuth not configured; OAuth routes will answer 503")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(auth_router)
    app.include_router(oauth_router)

    @app.get("/", response_class=PlainTextResponse)
    async def root():
        return "Server is healthy"

    @app.get("/health")
    async def health():
        """Health check endpoint for monitoring"""
        return {"status": "healthy", "service": "account-auth"}

    return app
