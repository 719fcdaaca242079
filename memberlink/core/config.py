"""Application configuration loaded from environment variables.

Settings for the database, API, staff authentication, member claim links,
and outbound email. Uses pydantic-settings for validation and .env file support.
"""

import uuid

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "memberlink_dev_password"  # nosec B105

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "memberlink"
    database_user: str = "memberlink_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD

    # API
    # 0.0.0.0 binds to all network interfaces (required for Docker containers)
    api_host: str = "0.0.0.0"  # nosec B104
    api_port: int = 8000

    # CORS (Security)
    # Default allows the Vite dev server used by the back-office frontend
    allowed_origins: list[str] = ["http://localhost:5173"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Staff authentication
    # Local mode: DEFAULT_STAFF_ID identifies the caller without a JWT
    # Hosted mode: auth_enabled=True, bearer JWT required on staff endpoints
    default_staff_id: uuid.UUID | None = None
    auth_enabled: bool = False
    auth_secret: SecretStr = SecretStr("")
    auth_issuer: str = "memberlink"
    auth_audience: str = "memberlink-staff"

    # Email (claim link delivery)
    email_from: str = "members@memberlink.org"
    resend_api_key: SecretStr = SecretStr("")

    # Frontend URL (claim links point at the member-facing pages)
    frontend_url: str = "http://localhost:5173"

    # Claim links
    token_ttl_days: int = 7
    claim_max_file_size_mb: int = 5
    store_timeout_seconds: float = 5.0

    # Rate Limiting (Security)
    # Member-facing claim endpoints are unauthenticated and keyed by IP
    rate_limit_claims: str = "20/minute"
    rate_limit_enabled: bool = True  # Disable for testing

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def database_url_sync(self) -> str:
        """Sync database URL for Alembic."""
        return (
            f"postgresql://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate configuration invariants and production security.

        Checks:
        - Claim link TTL, upload cap and store timeout must be positive
        - CORS must not use wildcard origin
        - Database password must not be the default in production
        - AUTH_SECRET must be set and >= 32 chars when auth is enabled in production
        """
        if self.token_ttl_days <= 0:
            msg = f"TOKEN_TTL_DAYS must be positive. Got: {self.token_ttl_days}"
            raise ValueError(msg)
        if self.claim_max_file_size_mb <= 0:
            msg = (
                "CLAIM_MAX_FILE_SIZE_MB must be positive. "
                f"Got: {self.claim_max_file_size_mb}"
            )
            raise ValueError(msg)
        if self.store_timeout_seconds <= 0:
            msg = (
                "STORE_TIMEOUT_SECONDS must be positive. "
                f"Got: {self.store_timeout_seconds}"
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "Staff endpoints carry credentials, which are incompatible "
                "with wildcard CORS origins."
            )
            raise ValueError(msg)

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            if self.auth_enabled:
                secret_value = self.auth_secret.get_secret_value()
                if not secret_value:
                    msg = (
                        "AUTH_SECRET must be set when AUTH_ENABLED=true in production. "
                        'Generate with: python -c "import secrets; '
                        'print(secrets.token_hex(32))"'
                    )
                    raise ValueError(msg)
                if len(secret_value) < _MIN_AUTH_SECRET_LENGTH:
                    msg = (
                        f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                        "characters for adequate security."
                    )
                    raise ValueError(msg)

        return self


settings = Settings()
