"""
Tests for password hashing, token issuance and session validation
"""
from datetime import timedelta

import pytest
from jose import jwt

from account_auth.auth import (
    LINK_TOKEN_TTL,
    SESSION_TOKEN_TTL,
    PasswordHasher,
    SessionRejected,
    SessionRejection,
    SessionValidator,
    TokenIssuer,
    to_millis,
)


class TestPasswordHasher:
    """Test bcrypt password hashing"""

    @pytest.fixture
    def hasher(self):
        return PasswordHasher(rounds=4)

    def test_hash_is_not_plaintext_and_verifies(self, hasher):
        hashed = hasher.hash("pw1")
        assert hashed != "pw1"
        assert hashed.startswith("$2")
        assert hasher.verify("pw1", hashed) is True
        assert hasher.verify("pw2", hashed) is False

    def test_hash_is_salted(self, hasher):
        assert hasher.hash("same") != hasher.hash("same")

    def test_cost_factor_is_applied(self):
        assert PasswordHasher(rounds=5).hash("pw").startswith("$2b$05$")

    def test_long_password_uses_every_byte(self, hasher):
        base = "x" * 80
        hashed = hasher.hash(base + "a")
        assert hasher.verify(base + "a", hashed) is True
        assert hasher.verify(base + "b", hashed) is False

    def test_empty_hash_never_matches(self, hasher):
        # OAuth-only accounts store an empty hash
        assert hasher.verify("anything", "") is False

    def test_garbage_hash_does_not_raise(self, hasher):
        assert hasher.verify("pw", "not-a-bcrypt-hash") is False

    def test_empty_password_rejected(self, hasher):
        with pytest.raises(ValueError):
            hasher.hash("")


class TestTokenIssuer:
    """Test opaque and session token issuance"""

    def test_lifetimes(self):
        assert LINK_TOKEN_TTL == timedelta(minutes=15)
        assert SESSION_TOKEN_TTL == timedelta(days=7)

    def test_opaque_tokens_are_unique_and_long(self):
        tokens = {TokenIssuer.issue_opaque_token() for _ in range(200)}
        assert len(tokens) == 200
        # 32 random bytes, base64url without padding
        assert all(len(token) >= 43 for token in tokens)

    def test_session_token_claims(self, issuer, clock, secret):
        token = issuer.issue_session_token({"sub": 42, "email": "al@x.com", "name": "Al"})
        claims = jwt.decode(token, secret, algorithms=["HS256"], options={"verify_exp": False})

        assert claims["sub"] == "42"
        assert claims["email"] == "al@x.com"
        assert claims["name"] == "Al"
        assert claims["iat"] == int(clock.now.timestamp())
        assert claims["exp"] == int((clock.now + SESSION_TOKEN_TTL).timestamp())
        assert claims["jti"]

    def test_subject_required(self, issuer):
        with pytest.raises(ValueError):
            issuer.issue_session_token({"email": "al@x.com"})

    def test_signing_key_required(self):
        with pytest.raises(ValueError):
            TokenIssuer("")

    def test_to_millis_is_exact(self, clock):
        moment = clock.now + LINK_TOKEN_TTL - timedelta(milliseconds=1)
        assert to_millis(moment) == to_millis(clock.now) + 15 * 60 * 1000 - 1


class TestSessionValidator:
    """Test session token validation"""

    def _reason(self, validator, token):
        with pytest.raises(SessionRejected) as exc_info:
            validator.validate(token)
        return exc_info.value.reason

    def test_valid_token_resolves_subject(self, issuer, validator):
        token = issuer.issue_session_token({"sub": "7"})
        subject = validator.validate(token)
        assert subject.user_id == 7
        assert subject.email is None

    def test_oauth_claims_are_exposed(self, issuer, validator):
        token = issuer.issue_session_token({"sub": "7", "email": "gina@example.com", "name": "Gina"})
        subject = validator.validate(token)
        assert subject.email == "gina@example.com"
        assert subject.name == "Gina"

    def test_valid_after_six_days_rejected_after_eight(self, issuer, validator, clock):
        token = issuer.issue_session_token({"sub": "7"})

        clock.advance(days=6)
        assert validator.validate(token).user_id == 7

        clock.advance(days=2)
        assert self._reason(validator, token) == SessionRejection.EXPIRED

    def test_validation_is_repeatable(self, issuer, validator):
        token = issuer.issue_session_token({"sub": "7"})
        assert validator.validate(token) == validator.validate(token)

    @pytest.mark.parametrize("token", [None, "", "   "])
    def test_missing(self, validator, token):
        assert self._reason(validator, token) == SessionRejection.MISSING

    @pytest.mark.parametrize("token", ["not-a-jwt", "a.b.c", "abc.def"])
    def test_malformed(self, validator, token):
        assert self._reason(validator, token) == SessionRejection.MALFORMED

    def test_tampered_signature(self, issuer, validator):
        token = issuer.issue_session_token({"sub": "7"})
        header, payload, signature = token.split(".")
        tampered = ".".join([header, payload, signature[::-1]])
        assert self._reason(validator, tampered) == SessionRejection.INVALID_SIGNATURE

    def test_other_key(self, clock, validator):
        foreign = TokenIssuer("another-secret-key-that-is-long-enough-1234", clock=clock)
        token = foreign.issue_session_token({"sub": "7"})
        assert self._reason(validator, token) == SessionRejection.INVALID_SIGNATURE

    def test_non_numeric_subject(self, issuer, validator):
        token = issuer.issue_session_token({"sub": "gina@example.com"})
        assert self._reason(validator, token) == SessionRejection.MALFORMED

    def test_independent_instances_share_nothing_but_key(self, issuer, clock, secret):
        token = issuer.issue_session_token({"sub": "9"})
        assert SessionValidator(secret, clock=clock).validate(token).user_id == 9
