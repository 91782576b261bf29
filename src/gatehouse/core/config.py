"""Configuration management for Gatehouse.

This module uses Pydantic Settings to load and validate configuration from
environment variables and .env files. Configuration is loaded at application
startup and is immutable during runtime.
"""

from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

RegistrationFlowName = Literal["self_registration", "admin_provisioned"]


class Settings(BaseSettings):
    """Application configuration settings.

    Settings are loaded from environment variables prefixed with
    ``GATEHOUSE_`` and from an optional .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GATEHOUSE_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    app_name: str = "Gatehouse"
    app_version: str = "0.1.0"
    environment: Literal["development", "production", "testing"] = "development"
    debug: bool = False
    api_prefix: str = "/api"
    app_url: str = Field(
        default="http://localhost:3000",
        description="Base URL of the frontend, used to build activation links",
    )

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8000

    # Database Settings
    database_url: str = "sqlite+aiosqlite:///./gh_data/gatehouse.db"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_echo: bool = False

    # Token Settings
    secret_key: str = Field(
        default="",
        description="HMAC secret (Base64 or raw text). Keys under 256 bits are replaced by a random key",
    )
    access_token_expire_minutes: int = 60
    activation_token_expire_days: int = 7
    clock_skew_seconds: int = 60
    revocation_prune_interval_seconds: int = 300

    # Account Lifecycle Settings
    registration_flow: RegistrationFlowName = "self_registration"
    provisioned_accounts_pending: bool = False
    self_registered_accounts_active: bool = False
    temporary_password_length: int = Field(default=12, ge=8)
    public_api_paths: list[str] = Field(
        default=[
            "/auth/login",
            "/auth/register",
            "/auth/activate",
            "/auth/validate-activation-token",
            "/auth/resend-activation",
        ],
        description="Routes that skip authentication, relative to api_prefix",
    )
    public_root_paths: list[str] = Field(
        default=["/health", "/ready", "/live", "/docs", "/redoc", "/openapi.json"],
        description="Routes outside api_prefix that skip authentication",
    )

    # Bootstrap administrator
    admin_email: str | None = Field(
        default=None,
        description="Email for the bootstrap administrator (created on startup if set)",
    )
    admin_password: str | None = Field(
        default=None,
        description="Password for the bootstrap administrator",
    )

    # Email Settings
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    smtp_use_ssl: bool = False
    mail_from_email: str = "no-reply@gatehouse.local"
    mail_from_name: str = "Gatehouse"

    # CORS Settings
    cors_origins: list[str] = Field(default=["http://localhost:3000", "http://localhost:5173"])
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = Field(default=["*"])
    cors_allow_headers: list[str] = Field(default=["*"])

    # Logging Settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "console"] = "json"

    @field_validator("cors_origins", "public_api_paths", "public_root_paths", mode="before")
    @classmethod
    def parse_comma_separated(cls, v: str | list[str]) -> list[str]:
        """Parse list settings from a comma-separated string or list."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @model_validator(mode="after")
    def validate_token_lifetimes(self) -> "Settings":
        """Reject non-positive token lifetimes and negative skew."""
        if self.access_token_expire_minutes <= 0:
            raise ValueError("access_token_expire_minutes must be positive")
        if self.activation_token_expire_days <= 0:
            raise ValueError("activation_token_expire_days must be positive")
        if self.clock_skew_seconds < 0:
            raise ValueError("clock_skew_seconds cannot be negative")
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def access_token_ttl(self) -> timedelta:
        return timedelta(minutes=self.access_token_expire_minutes)

    @property
    def activation_token_ttl(self) -> timedelta:
        return timedelta(days=self.activation_token_expire_days)

    @property
    def clock_skew(self) -> timedelta:
        return timedelta(seconds=self.clock_skew_seconds)

    @property
    def public_paths(self) -> list[str]:
        """Authentication allow-list, with the API routes under ``api_prefix``.

        The token inspection routes are public outside production only;
        they are not mounted at all in production.
        """
        prefix = self.api_prefix.rstrip("/")
        api_paths = list(self.public_api_paths)
        if not self.is_production:
            api_paths.append("/debug")
        return [f"{prefix}{path}" for path in api_paths] + list(self.public_root_paths)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: Cached application settings instance.
    """
    return Settings()
