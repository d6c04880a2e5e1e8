"""
Account flows: registration, verification, sign-in, logout and password reset

Each flow reads the user record, checks the request against it and the
clock, writes the new record state and returns a FlowResult describing the
response: message, optional session cookie directive, optional outbound
mail. Failures are raised as AuthError and rendered at the HTTP boundary.
"""
import hmac
import logging
from dataclasses import dataclass
from typing import Optional

from .auth import (
    LINK_TOKEN_TTL,
    Clock,
    PasswordHasher,
    Subject,
    TokenIssuer,
    to_millis,
    utc_now,
)
from .database import User
from .exceptions import AuthError, ErrorKind
from .notifications import EmailMessage, password_reset_email, verification_email
from .store import DuplicateEmailError, UserStore

logger = logging.getLogger(__name__)


@dataclass
class FlowResult:
    """Successful outcome of a flow"""
    message: Optional[str] = None
    session_token: Optional[str] = None
    clear_session: bool = False
    outbound: Optional[EmailMessage] = None

    def body(self) -> dict:
        body = {"success": True}
        if self.message is not None:
            body["message"] = self.message
        return body


def tokens_match(stored: Optional[str], presented: Optional[str]) -> bool:
    """Constant-time equality; an empty stored value never matches"""
    if not stored or not presented:
        return False
    return hmac.compare_digest(stored.encode('utf-8'), presented.encode('utf-8'))


class AuthService:
    """Credential-based account flows over a user store"""

    def __init__(
        self,
        store: UserStore,
        issuer: TokenIssuer,
        hasher: PasswordHasher,
        frontend_url: str,
        clock: Clock = utc_now,
        require_reset_authorization: bool = False,
    ):
        self.store = store
        self.issuer = issuer
        self.hasher = hasher
        self.frontend_url = frontend_url
        self.clock = clock
        self.require_reset_authorization = require_reset_authorization

    def _now_ms(self) -> int:
        return to_millis(self.clock())

    def _link_expiry_ms(self) -> int:
        return to_millis(self.clock() + LINK_TOKEN_TTL)

    def issue_session(self, user: User, **extra_claims) -> str:
        return self.issuer.issue_session_token({"sub": str(user.id), **extra_claims})

    def register(self, name: Optional[str], email: Optional[str], password: Optional[str]) -> FlowResult:
        if not name or not email or not password:
            raise AuthError(ErrorKind.VALIDATION, "Missing Details")

        logger.info(f"Signup attempt for email: {email}")
        if self.store.find_by_email(email) is not None:
            logger.warning(f"Signup failed: Email already registered - {email}")
            raise AuthError(ErrorKind.CONFLICT, "User already exists")

        verify_token = self.issuer.issue_opaque_token()
        try:
            user = self.store.insert(
                name=name,
                email=email,
                password_hash=self.hasher.hash(password),
                is_verified=False,
                verify_token=verify_token,
                verify_token_expires_at=self._link_expiry_ms(),
            )
        except DuplicateEmailError:
            raise AuthError(ErrorKind.CONFLICT, "User already exists")

        logger.info(f"User created with ID: {user.id}")
        return FlowResult(outbound=verification_email(self.frontend_url, email, verify_token))

    def verify_account(self, token: Optional[str], email: Optional[str]) -> FlowResult:
        if not token or not email:
            raise AuthError(ErrorKind.VALIDATION, "Missing details")

        user = self.store.find_by_email(email)
        if user is None:
            raise AuthError(ErrorKind.NOT_FOUND, "User not found")

        if not tokens_match(user.verify_token, token):
            raise AuthError(ErrorKind.INVALID_TOKEN, "Link is not valid")

        if self._now_ms() > user.verify_token_expires_at:
            raise AuthError(ErrorKind.EXPIRED_TOKEN, "Link is Expired")

        # Lost a race with another request consuming the same token
        if not self.store.consume_token(email, "verify_token", token, is_verified=True):
            raise AuthError(ErrorKind.INVALID_TOKEN, "Link is not valid")

        logger.info(f"Account verified for user ID: {user.id}")
        return FlowResult(message="Account verified", session_token=self.issue_session(user))

    def sign_in(self, email: Optional[str], password: Optional[str]) -> FlowResult:
        if not email or not password:
            raise AuthError(ErrorKind.VALIDATION, "Email and password are required")

        user = self.store.find_by_email(email)
        if user is None:
            raise AuthError(ErrorKind.NOT_FOUND, "Invalid email")

        if not self.hasher.verify(password, user.password_hash):
            logger.warning(f"Sign-in failed: incorrect password for user ID: {user.id}")
            raise AuthError(ErrorKind.BAD_CREDENTIALS, "Incorrect password")

        logger.info(f"User signed in: {user.id}")
        return FlowResult(session_token=self.issue_session(user))

    @staticmethod
    def logout() -> FlowResult:
        return FlowResult(message="Logged out", clear_session=True)

    @staticmethod
    def is_authenticated(subject: Optional[Subject]) -> FlowResult:
        if subject is None:
            raise AuthError(ErrorKind.UNAUTHORIZED, "Not Authorized Login Again.")
        return FlowResult()

    def request_password_reset(self, email: Optional[str]) -> FlowResult:
        if not email:
            raise AuthError(ErrorKind.VALIDATION, "Email required")

        user = self.store.find_by_email(email)
        if user is None:
            raise AuthError(ErrorKind.NOT_FOUND, "User not found")

        reset_token = self.issuer.issue_opaque_token()
        self.store.update_fields(
            email,
            reset_token=reset_token,
            reset_token_expires_at=self._link_expiry_ms(),
            reset_authorized_expires_at=0,
        )

        logger.info(f"Password reset requested for user ID: {user.id}")
        return FlowResult(
            message="Reset link sent to email",
            outbound=password_reset_email(self.frontend_url, email, reset_token),
        )

    def verify_reset_token(self, email: Optional[str], reset_token: Optional[str]) -> FlowResult:
        if not email or not reset_token:
            raise AuthError(ErrorKind.VALIDATION, "Missing Details.")

        user = self.store.find_by_email(email)
        if user is None:
            raise AuthError(ErrorKind.NOT_FOUND, "User not found.")

        if not tokens_match(user.reset_token, reset_token):
            raise AuthError(ErrorKind.INVALID_LINK, "Invalid Link.")

        if self._now_ms() > user.reset_token_expires_at:
            raise AuthError(ErrorKind.EXPIRED_LINK, "Link expired")

        consumed = self.store.consume_token(
            email,
            "reset_token",
            reset_token,
            reset_authorized_expires_at=self._link_expiry_ms(),
        )
        if not consumed:
            raise AuthError(ErrorKind.INVALID_LINK, "Invalid Link.")

        logger.info(f"Reset token verified for user ID: {user.id}")
        return FlowResult(message="Enter new password")

    def reset_password(self, email: Optional[str], new_password: Optional[str]) -> FlowResult:
        if not new_password:
            raise AuthError(ErrorKind.VALIDATION, "New password is required.")

        user = self.store.find_by_email(email) if email else None
        if user is None:
            raise AuthError(ErrorKind.NOT_FOUND, "User not found.")

        if self.require_reset_authorization and self._now_ms() > user.reset_authorized_expires_at:
            logger.warning(f"Password reset without a verified reset link for user ID: {user.id}")
            raise AuthError(ErrorKind.INVALID_LINK, "Reset not authorized.")

        user.password_hash = self.hasher.hash(new_password)
        user.reset_authorized_expires_at = 0
        self.store.save(user)

        logger.info(f"Password reset for user ID: {user.id}")
        return FlowResult(message="Password has been reset successfully.")
