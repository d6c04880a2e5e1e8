"""
Google OAuth login: authorization redirect, code exchange and account linking
"""
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import httpx

from .auth_service import AuthService, FlowResult
from .exceptions import AuthError, ErrorKind, UpstreamError
from .store import DuplicateEmailError

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v1/userinfo"
GOOGLE_SCOPES = ("email", "profile")


@dataclass
class GoogleProfile:
    email: str
    name: str


class GoogleOAuthClient:
    """Talks to Google's OAuth 2.0 endpoints"""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout
        self._transport = transport

    def authorization_url(self) -> str:
        """Redirect URL for Google's consent screen. No local state is created."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(GOOGLE_SCOPES),
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def exchange_code(self, code: str) -> str:
        """Trade an authorization code for an access token"""
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": self.redirect_uri,
            "code": code,
            "grant_type": "authorization_code",
        }
        try:
            async with self._client() as client:
                response = await client.post(GOOGLE_TOKEN_URL, data=data)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Google token exchange failed: {type(e).__name__} - {e}")
            raise UpstreamError()

        if not isinstance(payload, dict):
            logger.error(f"Google token exchange returned {type(payload).__name__}, expected an object")
            raise UpstreamError()

        access_token = payload.get("access_token")
        if not access_token:
            logger.error("Google token exchange returned no access_token")
            raise UpstreamError()
        return access_token

    async def fetch_profile(self, access_token: str) -> GoogleProfile:
        try:
            async with self._client() as client:
                response = await client.get(
                    GOOGLE_USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Google profile fetch failed: {type(e).__name__} - {e}")
            raise UpstreamError()

        if not isinstance(payload, dict):
            logger.error(f"Google profile fetch returned {type(payload).__name__}, expected an object")
            raise UpstreamError()

        email = payload.get("email")
        if not email:
            logger.error("Google profile has no email")
            raise UpstreamError()
        return GoogleProfile(email=email, name=payload.get("name") or email)


class GoogleOAuthService:
    """Links Google identities to user records"""

    def __init__(self, client: GoogleOAuthClient, accounts: AuthService):
        self.client = client
        self.accounts = accounts

    async def complete_login(self, code: Optional[str]) -> FlowResult:
        if not code:
            raise AuthError(ErrorKind.VALIDATION, "Missing authorization code")

        access_token = await self.client.exchange_code(code)
        profile = await self.client.fetch_profile(access_token)

        store = self.accounts.store
        user = store.find_by_email(profile.email)
        message = "User logged in successfully"
        if user is None:
            try:
                user = store.insert(
                    email=profile.email,
                    name=profile.name,
                    password_hash="",
                    is_verified=True,
                )
                message = "User registered successfully"
                logger.info(f"Created user {user.id} from Google profile")
            except DuplicateEmailError:
                # A concurrent login created the record first
                user = store.find_by_email(profile.email)
                if user is None:
                    raise AuthError(ErrorKind.INTERNAL, "Could not create account")
        else:
            logger.info(f"Google login for existing user {user.id}")

        token = self.accounts.issue_session(user, email=profile.email, name=profile.name)
        return FlowResult(message=message, session_token=token)
