"""
Pytest configuration and fixtures
"""
import json
import os
import re
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from fastapi.testclient import TestClient

# Add src to path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Set before importing so no .env file is loaded
os.environ["ENV"] = "test"

from account_auth.app import create_app  # noqa: E402
from account_auth.auth import PasswordHasher, SessionValidator, TokenIssuer  # noqa: E402
from account_auth.auth_service import AuthService  # noqa: E402
from account_auth.config import Config  # noqa: E402
from account_auth.notifications import EmailMessage, EmailProvider, Notifier  # noqa: E402
from account_auth.store import UserStore  # noqa: E402

TEST_SECRET = "test-secret-key-for-unit-tests-only-min-32-chars"
START = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Wall clock that only moves when told to"""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingProvider(EmailProvider):
    """Keeps sent messages; can be told to fail"""

    def __init__(self):
        self.sent: List[EmailMessage] = []
        self.fail = False

    def send(self, message: EmailMessage) -> None:
        if self.fail:
            raise ConnectionError("SMTP server unreachable")
        self.sent.append(message)


class FakeGoogle:
    """Stand-in for Google's token and userinfo endpoints"""

    def __init__(self):
        self.profile = {"email": "gina@example.com", "name": "Gina"}
        self.token_payload = {"access_token": "ya29.test", "token_type": "Bearer"}
        self.token_status = 200
        self.profile_status = 200
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "oauth2.googleapis.com":
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_grant"})
            return httpx.Response(200, json=self.token_payload)
        if request.url.host == "www.googleapis.com":
            if self.profile_status != 200:
                return httpx.Response(self.profile_status, json={"error": "unauthorized"})
            return httpx.Response(200, content=json.dumps(self.profile))
        return httpx.Response(404)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def secret():
    return TEST_SECRET


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def env(monkeypatch):
    """Test environment variables"""
    values = {
        "ENV": "test",
        "JWT_SECRET": TEST_SECRET,
        "DATABASE_URL": "sqlite://",
        "BCRYPT_ROUNDS": "4",
        "FRONTEND_URL": "http://localhost:5173",
        "GOOGLE_CLIENT_ID": "client-id.apps.googleusercontent.com",
        "GOOGLE_CLIENT_SECRET": "client-secret",
        "GOOGLE_REDIRECT_URI": "http://localhost:4000/api/auth/oauth/google/callback",
        "LOG_LEVEL": "WARNING",
    }
    for key in (
        "SMTP_HOST", "SMTP_USER", "SMTP_PASSWORD", "CORS_ORIGINS",
        "REQUIRE_RESET_AUTHORIZATION", "COOKIE_NAME", "COOKIE_SECURE",
    ):
        monkeypatch.delenv(key, raising=False)
    for key, value in values.items():
        monkeypatch.setenv(key, value)
    return values


@pytest.fixture
def config(env):
    return Config()


@pytest.fixture
def mail_provider():
    return RecordingProvider()


@pytest.fixture
def google():
    return FakeGoogle()


@pytest.fixture
def app(config, clock, mail_provider, google):
    return create_app(
        config,
        clock=clock,
        notifier=Notifier(mail_provider, sender="noreply@example.com"),
        google_transport=google.transport(),
    )


@pytest.fixture
def client(app):
    # https so the Secure session cookie is sent back
    with TestClient(app, base_url="https://testserver") as test_client:
        yield test_client


@pytest.fixture
def db_session(app):
    session = app.state.session_factory()
    yield session
    session.close()


@pytest.fixture
def store(db_session):
    return UserStore(db_session)


@pytest.fixture
def issuer(clock):
    return TokenIssuer(TEST_SECRET, clock=clock)


@pytest.fixture
def validator(clock):
    return SessionValidator(TEST_SECRET, clock=clock)


@pytest.fixture
def service(store, issuer, clock):
    return AuthService(
        store=store,
        issuer=issuer,
        hasher=PasswordHasher(rounds=4),
        frontend_url="http://localhost:5173",
        clock=clock,
    )


@pytest.fixture
def link_params():
    """Pull token and email back out of a verification or reset email"""
    def parse(message: EmailMessage) -> dict:
        match = re.search(r"https?://\S+", message.body)
        assert match, f"no link in email body: {message.body!r}"
        query = parse_qs(urlparse(match.group(0)).query)
        return {key: values[0] for key, values in query.items()}
    return parse


@pytest.fixture
def session_cookie():
    """Value of the session cookie set by a response, or None"""
    def extract(response) -> Optional[str]:
        for header in response.headers.get_list("set-cookie"):
            name, _, rest = header.partition("=")
            if name.strip() == "token":
                value = rest.split(";", 1)[0].strip().strip('"')
                return value or None
        return None
    return extract
