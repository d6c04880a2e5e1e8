"""
Database models and setup for the user store
"""
import logging
from datetime import datetime, timezone
from typing import Generator

from fastapi import Request
from sqlalchemy import BigInteger, Boolean, Column, DateTime, Integer, String, create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """One record per registered identity"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    password_hash = Column(String, nullable=False, default="")  # Empty for OAuth-only accounts
    is_verified = Column(Boolean, nullable=False, default=False)

    # Pending tokens; expiry in epoch milliseconds, 0 when nothing is pending
    verify_token = Column(String, nullable=False, default="")
    verify_token_expires_at = Column(BigInteger, nullable=False, default=0)
    reset_token = Column(String, nullable=False, default="")
    reset_token_expires_at = Column(BigInteger, nullable=False, default=0)
    reset_authorized_expires_at = Column(BigInteger, nullable=False, default=0)

    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} verified={self.is_verified}>"


def create_database_engine(database_url: str) -> Engine:
    """Create database engine for the configured URL"""
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # A single shared connection keeps the in-memory database alive
            engine = create_engine(database_url, connect_args=connect_args, poolclass=StaticPool)
        else:
            engine = create_engine(database_url, connect_args=connect_args)
        logger.info("SQLite engine created")
        return engine

    engine = create_engine(
        database_url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=5,
        max_overflow=5,
        pool_recycle=900,
        pool_timeout=10,
    )
    logger.info(f"Database engine created for {engine.url.get_backend_name()} (host: {engine.url.host})")
    return engine


def init_db(engine: Engine) -> sessionmaker:
    """
    Verify the store is reachable and create tables.

    Raises whatever the driver raises when the store cannot be reached;
    the caller must not serve traffic in that case.
    """
    logger.info("Testing database connection...")
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    logger.info("Database connection OK")

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db(request: Request) -> Generator[Session, None, None]:
    """Yield one session per request from the app's session factory"""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
