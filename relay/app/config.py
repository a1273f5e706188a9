"""
Configuration module for the Kick OAuth Relay.

This module uses Pydantic Settings to load and validate environment variables
for the Kick OAuth client credentials, upstream endpoints, CORS settings and
server binding.

Environment variables are loaded from .env file or system environment.
Only the client secret is sensitive; every other value has a working default.
"""

import logging
from functools import lru_cache
from typing import List, Optional
from urllib.parse import quote

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_ALLOWED_ORIGINS = ",".join([
    "https://parachutegame.netlify.app",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:3001",
])

DEFAULT_LEGACY_USER_URLS = ",".join([
    "https://kick.com/api/v1/user",
    "https://api.kick.com/v1/user",
])


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Client credentials, Kick endpoints, CORS policy and server options
    are all defined here.
    """

    # =========================================================================
    # Kick OAuth Client Credentials
    # =========================================================================

    KICK_CLIENT_ID: Optional[str] = Field(
        None,
        validation_alias=AliasChoices(
            "KICK_CLIENT_ID", "CENTRAL_CLIENT_ID", "VITE_CENTRAL_CLIENT_ID"
        ),
        description="Kick OAuth application client ID",
    )

    KICK_CLIENT_SECRET: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("KICK_CLIENT_SECRET", "CENTRAL_CLIENT_SECRET"),
        description="Kick OAuth client secret (never sent to the browser)",
    )

    # =========================================================================
    # Kick Upstream Endpoints
    # =========================================================================

    KICK_OAUTH_BASE_URL: str = Field(
        default="https://id.kick.com/oauth/authorize",
        description="Kick authorization endpoint",
    )

    KICK_TOKEN_URL: str = Field(
        default="https://id.kick.com/oauth/token",
        description="Kick token endpoint used for the code exchange",
    )

    KICK_API_BASE_URL: str = Field(
        default="https://kick.com/api/v2",
        description="Kick website API base (user and channel lookups)",
    )

    KICK_PUBLIC_API_URL: str = Field(
        default="https://api.kick.com/public/v1",
        description="Kick public API base (array-wrapped user listing)",
    )

    KICK_LEGACY_USER_URLS: str = Field(
        default=DEFAULT_LEGACY_USER_URLS,
        description="Comma-separated legacy user endpoints tried after the API base",
    )

    KICK_OAUTH_SCOPES: str = Field(
        default="user:read channel:read",
        description="Space-separated scopes requested in the authorization URL",
    )

    KICK_EMOTE_URL_TEMPLATE: str = Field(
        default="https://files.kick.com/emotes/{emote_id}/fullsize",
        description="Upstream emote URL, must contain {emote_id}",
    )

    EMOTE_CACHE_SECONDS: int = Field(
        default=3600,
        description="Public cache lifetime for relayed emotes",
        ge=0,
    )

    UPSTREAM_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Timeout applied to every upstream call",
        gt=0,
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================

    HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the relay server",
    )

    PORT: int = Field(
        default=3001,
        description="Port to bind the relay server",
        ge=1,
        le=65535,
    )

    ENVIRONMENT: str = Field(
        default="development",
        validation_alias=AliasChoices("ENVIRONMENT", "NODE_ENV"),
        description="Deployment environment label reported by /health",
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    # =========================================================================
    # CORS Configuration
    # =========================================================================

    ALLOWED_ORIGINS: str = Field(
        default=DEFAULT_ALLOWED_ORIGINS,
        description="Comma-separated list of allowed CORS origins",
    )

    # =========================================================================
    # Pydantic Settings Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra env vars not defined here
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def client_id_configured(self) -> bool:
        return bool(self.KICK_CLIENT_ID)

    @property
    def client_secret_configured(self) -> bool:
        return bool(self.KICK_CLIENT_SECRET)

    @property
    def credentials_configured(self) -> bool:
        """
        Whether both client credentials are present.

        Token exchange refuses to call upstream when this is False.
        """
        return self.client_id_configured and self.client_secret_configured

    @property
    def allowed_origins_list(self) -> List[str]:
        """
        Parse and return ALLOWED_ORIGINS as a list.

        Returns:
            List of allowed origin URLs, or empty list if not configured.
        """
        return _split_csv(self.ALLOWED_ORIGINS)

    @property
    def legacy_user_urls_list(self) -> List[str]:
        return _split_csv(self.KICK_LEGACY_USER_URLS)

    @property
    def api_base_url(self) -> str:
        return self.KICK_API_BASE_URL.rstrip("/")

    @property
    def public_api_url(self) -> str:
        return self.KICK_PUBLIC_API_URL.rstrip("/")

    def emote_url(self, emote_id: str) -> str:
        """Build the upstream URL for an emote identifier."""
        return self.KICK_EMOTE_URL_TEMPLATE.format(emote_id=emote_id)

    def channel_url(self, username: str) -> str:
        """Build the channel-info URL keyed by a user's name."""
        return f"{self.api_base_url}/channels/{quote(username, safe='')}"

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator(
        "KICK_OAUTH_BASE_URL",
        "KICK_TOKEN_URL",
        "KICK_API_BASE_URL",
        "KICK_PUBLIC_API_URL",
    )
    @classmethod
    def validate_http_url(cls, v: str) -> str:
        """
        Validate that an upstream endpoint is an absolute HTTP(S) URL.

        Raises:
            ValueError: If the value has no http:// or https:// scheme
        """
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(
                f"Invalid URL: '{v}'. Expected an http:// or https:// URL"
            )
        return v

    @field_validator("KICK_LEGACY_USER_URLS")
    @classmethod
    def validate_legacy_user_urls(cls, v: str) -> str:
        for url in _split_csv(v):
            if not url.startswith(("http://", "https://")):
                raise ValueError(
                    f"Invalid legacy user endpoint: '{url}'. "
                    "Expected an http:// or https:// URL"
                )
        return v

    @field_validator("KICK_EMOTE_URL_TEMPLATE")
    @classmethod
    def validate_emote_template(cls, v: str) -> str:
        if "{emote_id}" not in v:
            raise ValueError("KICK_EMOTE_URL_TEMPLATE must contain '{emote_id}'")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """
        Validate log level is one of the standard logging level names.

        Raises:
            ValueError: If level is not supported
        """
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        level = v.upper()

        if level not in allowed_levels:
            raise ValueError(
                f"LOG_LEVEL must be one of {allowed_levels}, got: {v}"
            )

        return level


def _split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    This function is cached so that the settings are loaded only once
    during the application lifecycle.

    Returns:
        Settings instance with all configuration loaded and validated.

    Raises:
        ValidationError: If an environment variable is present but invalid.

    Example:
        >>> from relay.app.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.KICK_TOKEN_URL)
    """
    return Settings()


# =============================================================================
# Configuration Helpers
# =============================================================================

def validate_configuration(settings: Settings) -> dict:
    """
    Validate critical configuration settings and return a status report.

    This is called during application startup. A missing secret is reported
    as an error but never stops the process; token exchange fails per request
    instead.

    Returns:
        Dictionary with validation status and any warnings.

    Example:
        >>> status = validate_configuration(get_settings())
        >>> if not status["valid"]:
        ...     print(status["errors"])
    """
    errors = []
    warnings = []

    if not settings.client_id_configured:
        errors.append("KICK_CLIENT_ID is not set (required for OAuth)")

    if not settings.client_secret_configured:
        errors.append("KICK_CLIENT_SECRET is not set (required for OAuth)")

    if not settings.allowed_origins_list:
        warnings.append("ALLOWED_ORIGINS is empty, browsers will be blocked by CORS")

    if "*" in settings.allowed_origins_list:
        warnings.append("ALLOWED_ORIGINS contains '*' which cannot be combined with credentials")

    if not settings.KICK_TOKEN_URL.startswith("https://"):
        warnings.append("KICK_TOKEN_URL is not HTTPS, the client secret would travel in clear text")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "environment": settings.ENVIRONMENT,
    }


def log_configuration(settings: Settings, logger: Optional[logging.Logger] = None) -> None:
    """Log a non-sensitive configuration summary and any problems found."""
    logger = logger or logging.getLogger(__name__)
    status = validate_configuration(settings)

    logger.info(
        "Relay configuration loaded",
        extra={
            "client_id_configured": settings.client_id_configured,
            "client_secret_configured": settings.client_secret_configured,
            "config_valid": status["valid"],
            "environment": settings.ENVIRONMENT,
            "allowed_origins": settings.allowed_origins_list,
        },
    )

    for error in status["errors"]:
        logger.warning(error)
    for warning in status["warnings"]:
        logger.warning(warning)
