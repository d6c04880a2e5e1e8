"""
Authentication utilities: password hashing, token issuance and session validation
"""
import hashlib
import logging
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

import bcrypt
from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from .exceptions import AuthError, ErrorKind

logger = logging.getLogger(__name__)

# Lifetimes
LINK_TOKEN_TTL = timedelta(minutes=15)  # verification and reset tokens
SESSION_TOKEN_TTL = timedelta(days=7)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_millis(moment: datetime) -> int:
    """Epoch milliseconds, the unit token expiries are stored in"""
    return (moment - EPOCH) // timedelta(milliseconds=1)


class PasswordHasher:
    """Salted bcrypt hashing with a tunable cost factor"""

    def __init__(self, rounds: int = 10):
        self.rounds = rounds

    @staticmethod
    def _prepare(password: str) -> bytes:
        # Bcrypt only reads 72 bytes; longer passwords are pre-hashed with
        # SHA256 (64-byte hex digest) so every byte counts.
        password_bytes = password.encode('utf-8')
        if len(password_bytes) > 72:
            return hashlib.sha256(password_bytes).hexdigest().encode('utf-8')
        return password_bytes

    def hash(self, password: str) -> str:
        if not password:
            raise ValueError("Password cannot be empty")
        hashed = bcrypt.hashpw(self._prepare(password), bcrypt.gensalt(rounds=self.rounds))
        return hashed.decode('utf-8')

    def verify(self, password: str, hashed_password: str) -> bool:
        """Constant-time check of a password against a stored hash"""
        if not password or not hashed_password:
            return False
        try:
            return bcrypt.checkpw(self._prepare(password), hashed_password.encode('utf-8'))
        except ValueError as e:
            # Stored value is not a bcrypt hash
            logger.warning(f"Password verification failed: {type(e).__name__}")
            return False


class TokenIssuer:
    """Issues opaque link tokens and signed session tokens"""

    def __init__(self, secret_key: str, algorithm: str = "HS256", clock: Clock = utc_now):
        if not secret_key:
            raise ValueError("A signing key is required")
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.clock = clock

    @staticmethod
    def issue_opaque_token() -> str:
        """256 bits from the OS CSPRNG, URL safe"""
        return secrets.token_urlsafe(32)

    def issue_session_token(self, claims: Dict[str, Any], ttl: timedelta = SESSION_TOKEN_TTL) -> str:
        """
        Sign a session token.

        Args:
            claims: Subject claims, must include 'sub' (the user id)
            ttl: Validity window from now

        Returns:
            Encoded JWT string
        """
        if "sub" not in claims:
            raise ValueError("Session claims must include 'sub'")

        issued_at = self.clock()
        to_encode = dict(claims)
        to_encode["sub"] = str(to_encode["sub"])  # JWT requires 'sub' to be a string
        to_encode.update({
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + ttl).timestamp()),
            "jti": str(uuid.uuid4()),
        })
        return jwt.encode(to_encode, self._secret_key, algorithm=self.algorithm)


class SessionRejection(str, Enum):
    MISSING = "MISSING"
    MALFORMED = "MALFORMED"
    EXPIRED = "EXPIRED"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"


class SessionRejected(Exception):
    def __init__(self, reason: SessionRejection):
        super().__init__(reason.value)
        self.reason = reason


@dataclass(frozen=True)
class Subject:
    """Identity resolved from a session token"""
    user_id: int
    email: Optional[str] = None
    name: Optional[str] = None
    claims: Dict[str, Any] = field(default_factory=dict, compare=False)


class SessionValidator:
    """
    Verifies session tokens. Pure: the outcome depends only on the token,
    the key and the clock.
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256", clock: Clock = utc_now):
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.clock = clock

    def validate(self, token: Optional[str]) -> Subject:
        if not token or not token.strip():
            raise SessionRejected(SessionRejection.MISSING)
        token = token.strip()

        try:
            jwt.get_unverified_claims(token)
        except JWTError:
            raise SessionRejected(SessionRejection.MALFORMED)

        try:
            # Expiry is checked below against the injected clock
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTError as e:
            logger.debug(f"Session token rejected: {type(e).__name__} - {e}")
            raise SessionRejected(SessionRejection.INVALID_SIGNATURE)

        exp = payload.get("exp")
        if not isinstance(exp, (int, float)):
            raise SessionRejected(SessionRejection.MALFORMED)
        if self.clock().timestamp() > exp:
            raise SessionRejected(SessionRejection.EXPIRED)

        try:
            user_id = int(payload.get("sub"))
        except (TypeError, ValueError):
            raise SessionRejected(SessionRejection.MALFORMED)

        return Subject(
            user_id=user_id,
            email=payload.get("email"),
            name=payload.get("name"),
            claims=payload,
        )


# Authorization header is accepted as a fallback to the session cookie
http_bearer = HTTPBearer(auto_error=False)


def get_auth_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer)
) -> Optional[str]:
    """Extract the session token from the cookie, then the Authorization header"""
    cookie_name = request.app.state.config.COOKIE_NAME
    cookie_token = request.cookies.get(cookie_name)
    if cookie_token:
        return cookie_token
    if credentials and credentials.credentials:
        logger.debug("Token found in Authorization header")
        return credentials.credentials
    return None


async def get_current_subject(
    request: Request,
    token: Optional[str] = Depends(get_auth_token),
) -> Subject:
    """
    Resolve the authenticated subject or short-circuit with UNAUTHORIZED.

    The subject is also placed on request.state for downstream handlers.
    """
    validator: SessionValidator = request.app.state.session_validator
    try:
        subject = validator.validate(token)
    except SessionRejected as e:
        logger.warning(f"Authentication failed: {e.reason.value}")
        raise AuthError(ErrorKind.UNAUTHORIZED, "Not Authorized Login Again.")

    request.state.subject = subject
    return subject


def set_session_cookie(response: Response, token: str, config) -> None:
    """Attach the session cookie: http-only, secure, cross-site, 7-day max-age"""
    response.set_cookie(
        key=config.COOKIE_NAME,
        value=token,
        max_age=int(SESSION_TOKEN_TTL.total_seconds()),
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite="none" if config.COOKIE_SECURE else "lax",
    )


def clear_session_cookie(response: Response, config) -> None:
    response.delete_cookie(
        key=config.COOKIE_NAME,
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite="none" if config.COOKIE_SECURE else "lax",
    )
