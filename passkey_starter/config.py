"""Application configuration settings for the passkey starter."""

from typing import List, Optional
from urllib.parse import urlparse

from fastapi import Request
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with validation and defaults.

    All values can be provided through environment variables with the
    ``PASSKEY_`` prefix (e.g. ``PASSKEY_RP_ID``) or a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="PASSKEY_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./passkey_starter.db",
        description="Async SQLAlchemy database URL"
    )

    # WebAuthn Configuration
    rp_id: str = Field(default="localhost", description="Relying Party ID")
    rp_name: str = Field(
        default="Passkey Starter", description="Relying Party display name"
    )
    rp_origin: str = Field(
        default="http://localhost:3000", description="Expected ceremony origin"
    )
    require_user_verification: bool = Field(
        default=True, description="Require the authenticator UV flag"
    )
    challenge_ttl_seconds: int = Field(
        default=300, ge=30, description="Challenge lifetime in seconds"
    )
    ceremony_timeout_ms: int = Field(
        default=60000, description="Client-side ceremony timeout hint"
    )

    # Session Configuration
    session_max_age_seconds: int = Field(
        default=30 * 24 * 60 * 60, description="Session lifetime in seconds"
    )
    session_update_age_seconds: int = Field(
        default=24 * 60 * 60,
        description="Minimum interval between rolling session renewals"
    )
    session_cookie_name: str = Field(
        default="passkey_session", description="Session cookie name"
    )
    session_cookie_secure: Optional[bool] = Field(
        default=None,
        description="Secure cookie flag (derived from the origin scheme if unset)"
    )

    # Route classification
    sign_in_path: str = Field(default="/auth/signin", description="Sign-in page")
    error_path: str = Field(default="/auth/error", description="Auth error page")
    public_path_prefixes: List[str] = Field(
        default=["/api/auth", "/auth", "/static"],
        description="Path prefixes that bypass every auth checkpoint"
    )
    public_paths: List[str] = Field(
        default=["/", "/favicon.ico", "/health"],
        description="Individual paths that bypass every auth checkpoint"
    )

    # Environment Configuration
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Debug mode")

    # CORS Configuration
    allowed_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )

    # Rate Limiting
    enable_rate_limiting: bool = Field(
        default=True, description="Rate limit the ceremony endpoints"
    )
    ceremony_rate_limit: str = Field(
        default="20/minute", description="slowapi limit string for ceremonies"
    )

    # Housekeeping
    enable_background_tasks: bool = Field(
        default=True, description="Run the expired-record eviction task"
    )
    cleanup_interval_seconds: int = Field(
        default=300, ge=10, description="Eviction interval in seconds"
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        allowed = ["development", "staging", "production"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @field_validator("rp_origin")
    @classmethod
    def validate_origin(cls, v: str) -> str:
        """Validate origin URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("Origin must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("rp_id")
    @classmethod
    def validate_rp_id(cls, v: str) -> str:
        """RP IDs are bare hostnames."""
        v = v.strip().lower()
        if not v or "/" in v or ":" in v:
            raise ValueError("RP ID must be a bare domain (no scheme, port or path)")
        return v

    @model_validator(mode="after")
    def validate_rp_matches_origin(self) -> "Settings":
        """The RP ID must be the origin host or a registrable suffix of it."""
        host = (urlparse(self.rp_origin).hostname or "").lower()
        if host != self.rp_id and not host.endswith("." + self.rp_id):
            raise ValueError(
                f"RP ID '{self.rp_id}' does not match origin host '{host}'"
            )
        return self

    @property
    def cookie_secure(self) -> bool:
        """Whether the session cookie carries the Secure flag."""
        if self.session_cookie_secure is not None:
            return self.session_cookie_secure
        return self.rp_origin.startswith("https://")


def get_app_settings(request: Request) -> Settings:
    """Dependency returning the settings the application was built with."""
    return request.app.state.settings
