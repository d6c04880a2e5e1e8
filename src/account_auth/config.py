"""
Central configuration module for the account auth service
Reads and validates environment variables with strict checks for production
"""
import os
import sys
from typing import Optional, List

from dotenv import load_dotenv

# Only load .env in development
if os.getenv("ENV", "dev").lower() == "dev":
    load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Central configuration class with environment variable validation"""

    def __init__(self):
        """Read environment variables, then validate them"""
        self.ENV: str = os.getenv("ENV", "dev").lower()

        # Session signing
        self.JWT_SECRET: str = os.getenv("JWT_SECRET", "")
        self.JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")

        # User store
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./account_auth.db")

        # Bcrypt cost factor. Each increment doubles hashing time.
        self.BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "10"))

        # Frontend pages that receive verification/reset links
        self.FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:5173").rstrip("/")

        # Session cookie
        self.COOKIE_NAME: str = os.getenv("COOKIE_NAME", "token")
        self.COOKIE_SECURE: bool = _env_bool("COOKIE_SECURE", "true")

        # Google OAuth (optional)
        self.GOOGLE_CLIENT_ID: Optional[str] = os.getenv("GOOGLE_CLIENT_ID")
        self.GOOGLE_CLIENT_SECRET: Optional[str] = os.getenv("GOOGLE_CLIENT_SECRET")
        self.GOOGLE_REDIRECT_URI: Optional[str] = os.getenv("GOOGLE_REDIRECT_URI")
        self.OAUTH_HTTP_TIMEOUT: float = float(os.getenv("OAUTH_HTTP_TIMEOUT", "10"))

        # Outbound mail (optional, dev provider logs instead)
        self.SMTP_HOST: Optional[str] = os.getenv("SMTP_HOST")
        self.SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
        self.SMTP_USER: Optional[str] = os.getenv("SMTP_USER")
        self.SMTP_PASSWORD: Optional[str] = os.getenv("SMTP_PASSWORD")
        self.SENDER_EMAIL: str = os.getenv("SENDER_EMAIL", "noreply@example.com")
        self.SMTP_TIMEOUT: float = float(os.getenv("SMTP_TIMEOUT", "20"))

        # When enabled, reset-password only succeeds inside the window opened
        # by a successful verify-reset-token for the same account.
        self.REQUIRE_RESET_AUTHORIZATION: bool = _env_bool("REQUIRE_RESET_AUTHORIZATION")

        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.PORT: int = int(os.getenv("PORT", "4000"))

        self.CORS_ORIGINS: List[str] = []
        self._load_cors_origins()
        self._validate()

    def _load_cors_origins(self):
        """Load CORS origins from environment variable"""
        default_origins = [self.FRONTEND_URL]

        cors_env = os.getenv("CORS_ORIGINS", "")
        if cors_env:
            env_origins = [origin.strip() for origin in cors_env.split(",") if origin.strip()]
            self.CORS_ORIGINS = default_origins + [o for o in env_origins if o not in default_origins]
        else:
            self.CORS_ORIGINS = default_origins

    def _validate(self):
        """Validate required configuration based on environment"""
        errors = []

        if self.ENV not in ["dev", "test", "staging", "prod"]:
            errors.append(f"Invalid ENV value: {self.ENV}. Must be 'dev', 'test', 'staging', or 'prod'")

        # JWT_SECRET is required for all environments
        if not self.JWT_SECRET:
            errors.append("JWT_SECRET is required but not set")
        elif len(self.JWT_SECRET) < 32:
            errors.append(f"JWT_SECRET must be at least 32 characters (current: {len(self.JWT_SECRET)})")

        if not self.DATABASE_URL:
            errors.append("DATABASE_URL is required but not set")

        if self.BCRYPT_ROUNDS < 4 or self.BCRYPT_ROUNDS > 31:
            errors.append(f"BCRYPT_ROUNDS must be between 4 and 31 (got: {self.BCRYPT_ROUNDS})")

        # Google OAuth is all-or-nothing
        google_values = [self.GOOGLE_CLIENT_ID, self.GOOGLE_CLIENT_SECRET, self.GOOGLE_REDIRECT_URI]
        if any(google_values) and not all(google_values):
            errors.append("GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET and GOOGLE_REDIRECT_URI must be set together")

        if self.ENV in ["staging", "prod"]:
            if not self.FRONTEND_URL.startswith("https://"):
                errors.append("FRONTEND_URL must use HTTPS in staging/production")
            if not self.COOKIE_SECURE:
                errors.append("COOKIE_SECURE must be enabled in staging/production")

        # Fail fast in staging/prod
        if errors and self.ENV in ["staging", "prod"]:
            print("=" * 60, file=sys.stderr)
            print("CONFIGURATION VALIDATION FAILED", file=sys.stderr)
            print("=" * 60, file=sys.stderr)
            for error in errors:
                print(f"  {error}", file=sys.stderr)
            print("=" * 60, file=sys.stderr)
            sys.exit(1)

        # Warn otherwise
        if errors:
            print("=" * 60, file=sys.stderr)
            print(f"CONFIGURATION WARNINGS ({self.ENV} mode - continuing)", file=sys.stderr)
            print("=" * 60, file=sys.stderr)
            for error in errors:
                print(f"  {error}", file=sys.stderr)
            print("=" * 60, file=sys.stderr)

    @property
    def is_dev(self) -> bool:
        """Check if running in development mode"""
        return self.ENV == "dev"

    @property
    def is_prod(self) -> bool:
        """Check if running in production mode"""
        return self.ENV == "prod"

    @property
    def google_oauth_enabled(self) -> bool:
        return bool(self.GOOGLE_CLIENT_ID and self.GOOGLE_CLIENT_SECRET and self.GOOGLE_REDIRECT_URI)

    @property
    def smtp_enabled(self) -> bool:
        return bool(self.SMTP_HOST and self.SMTP_USER and self.SMTP_PASSWORD)


_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the process-wide configuration"""
    global _config
    if _config is None:
        _config = Config()
    return _config
