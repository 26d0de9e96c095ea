"""Application settings and configuration.

This module defines all configuration options for the X4PN metering service.
Settings are loaded from environment variables with sensible defaults.
"""

from decimal import Decimal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    This class defines all configuration options for the metering service.
    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="X4PN Meter", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./x4pn.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    sqlite_busy_timeout_seconds: float = Field(default=30.0, alias="SQLITE_BUSY_TIMEOUT_SECONDS")

    # Redis configuration for node notifications
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")
    notification_backend: str = Field(default="memory", alias="NOTIFICATION_BACKEND")
    notification_channel_prefix: str = Field(default="node", alias="NOTIFICATION_CHANNEL_PREFIX")
    notification_timeout_seconds: float = Field(default=2.0, alias="NOTIFICATION_TIMEOUT_SECONDS")

    # JWT authentication settings
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )
    login_nonce_ttl_seconds: int = Field(default=300, alias="LOGIN_NONCE_TTL_SECONDS")
    login_message_prefix: str = Field(
        default="Sign this message to login to X4PN",
        alias="LOGIN_MESSAGE_PREFIX",
    )

    # Settlement behaviour
    attestation_domain: str = Field(default="x4pn-vpn-sessions", alias="ATTESTATION_DOMAIN")
    settlement_max_retries: int = Field(default=3, alias="SETTLEMENT_MAX_RETRIES")
    initial_usdc_balance: Decimal = Field(default=Decimal("0"), alias="INITIAL_USDC_BALANCE")
    initial_x4pn_balance: Decimal = Field(default=Decimal("0"), alias="INITIAL_X4PN_BALANCE")

    # Optional stale-session sweep
    sweep_enabled: bool = Field(default=False, alias="SWEEP_ENABLED")
    sweep_interval_seconds: float = Field(default=60.0, alias="SWEEP_INTERVAL_SECONDS")
    sweep_stale_after_seconds: int = Field(default=300, alias="SWEEP_STALE_AFTER_SECONDS")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.

        Returns:
            Database URL compatible with synchronous database drivers
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides.

        Returns:
            The active database URL (test database if in testing mode, otherwise production)
        """
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url


settings = Settings()  # type: ignore[call-arg]
