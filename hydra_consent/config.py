"""
Configuration module for the Hydra consent service.

This module uses Pydantic Settings to load and validate environment variables
for the provider admin API, consent policy, login session cookies and the
HTTP server.

Environment variables are loaded from .env file or system environment.
Settings are read once at startup; the consent policy derived from them is
an immutable PolicyConfig value handed to the orchestrator.
"""

import logging
from functools import lru_cache
from typing import FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Whitelist entry that skips consent for every client
WILDCARD = "*"


class PolicyConfig(BaseModel):
    """
    Process-wide consent policy. Frozen after construction.

    Attributes:
        consent_whitelist: Client request URLs for which consent is skipped;
            the "*" entry skips consent for all clients
        override_requested_audience: Use the audience submitted with the
            consent form instead of the provider-reported one
        remember_for: Remember-me duration in seconds
    """

    model_config = ConfigDict(frozen=True)

    consent_whitelist: FrozenSet[str] = frozenset()
    override_requested_audience: bool = False
    remember_for: int = Field(default=3600, ge=0)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    """

    # =========================================================================
    # Provider Admin API
    # =========================================================================

    HYDRA_ADMIN_URL: HttpUrl = Field(
        default="http://localhost:4445",
        description="Base URL of the provider's administrative API",
    )

    HYDRA_ADMIN_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        description="Timeout for every admin API round trip",
        gt=0,
        le=300,
    )

    # =========================================================================
    # Consent Policy
    # =========================================================================

    CONSENT_WHITELIST: str = Field(
        default="",
        description="Comma-separated client request URLs that skip consent, or '*' for all",
    )

    OVERRIDE_REQUESTED_AUDIENCE: bool = Field(
        default=False,
        description="Grant the audience submitted with the consent form instead of the requested one",
    )

    REMEMBER_FOR_SECONDS: int = Field(
        default=3600,
        description="How long the provider may skip re-prompting a remembered decision",
        ge=0,
    )

    # =========================================================================
    # Login Session
    # =========================================================================

    SESSION_JWT_SECRET: str = Field(
        ...,
        description="Secret key for signing session JWTs (must be cryptographically secure)",
        min_length=32,
    )

    SESSION_JWT_ALGORITHM: str = Field(
        default="HS256",
        description="JWT signing algorithm (HS256, HS384, or HS512)",
    )

    SESSION_JWT_EXPIRY_MINUTES: int = Field(
        default=60,
        description="Session JWT expiry time in minutes",
        ge=5,
        le=1440,
    )

    SESSION_JWT_ISSUER: str = Field(default="hydra-consent")

    SESSION_COOKIE_NAME: str = Field(default="hydra_consent_session")

    COOKIE_SECURE: bool = Field(
        default=False,
        description="Set the Secure flag on session cookies (enable behind HTTPS)",
    )

    # =========================================================================
    # Redirects
    # =========================================================================

    LOGIN_OK_PATH: str = Field(
        default="/",
        description="Static redirect after login when no hook redirected the browser",
    )

    LOGOUT_REJECTED_PATH: str = Field(
        default="/",
        description="Redirect after a rejected logout when the provider gives no location",
    )

    # =========================================================================
    # Users, Server and Logging
    # =========================================================================

    USERS_FILE: Optional[str] = Field(
        default=None,
        description="JSON file seeding the built-in user store",
    )

    HOST: str = Field(default="0.0.0.0")

    PORT: int = Field(default=3000, ge=1, le=65535)

    LOG_LEVEL: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def consent_whitelist_list(self) -> List[str]:
        """
        Parse CONSENT_WHITELIST into a list of entries.

        Blank entries are dropped so an empty variable never whitelists
        clients whose request URL is empty.
        """
        if not self.CONSENT_WHITELIST:
            return []

        return [
            entry.strip()
            for entry in self.CONSENT_WHITELIST.split(",")
            if entry.strip()
        ]

    @property
    def hydra_admin_url_str(self) -> str:
        """Admin API URL as a string without trailing slash."""
        return str(self.HYDRA_ADMIN_URL).rstrip("/")

    @property
    def policy_config(self) -> PolicyConfig:
        """Build the immutable consent policy from these settings."""
        return PolicyConfig(
            consent_whitelist=frozenset(self.consent_whitelist_list),
            override_requested_audience=self.OVERRIDE_REQUESTED_AUDIENCE,
            remember_for=self.REMEMBER_FOR_SECONDS,
        )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("SESSION_JWT_ALGORITHM")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        """
        Validate JWT algorithm is one of the supported HMAC algorithms.

        Raises:
            ValueError: If algorithm is not supported
        """
        allowed_algorithms = ["HS256", "HS384", "HS512"]

        if v not in allowed_algorithms:
            raise ValueError(
                f"JWT algorithm must be one of {allowed_algorithms}, got: {v}"
            )

        return v

    @field_validator("LOGIN_OK_PATH", "LOGOUT_REJECTED_PATH")
    @classmethod
    def validate_local_path(cls, v: str) -> str:
        if not v.startswith("/") or v.startswith("//"):
            raise ValueError(f"Redirect path must be a local path starting with '/', got: {v}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    This function is cached so that the settings are loaded only once
    during the application lifecycle.

    Raises:
        ValidationError: If required environment variables are missing
                        or invalid.
    """
    return Settings()


# =============================================================================
# Configuration Helpers
# =============================================================================

def validate_configuration(settings: Settings) -> dict:
    """
    Validate settings that are legal but risky and return a status report.

    Called during application startup; warnings are logged, errors are
    reported to the caller.

    Returns:
        Dictionary with validation status and any warnings.
    """
    errors = []
    warnings = []

    whitelist = settings.consent_whitelist_list
    if WILDCARD in whitelist:
        warnings.append("CONSENT_WHITELIST contains '*': consent is skipped for every client")

    if settings.OVERRIDE_REQUESTED_AUDIENCE:
        warnings.append(
            "OVERRIDE_REQUESTED_AUDIENCE is enabled: submitted audiences replace the requested ones"
        )

    admin_url = settings.hydra_admin_url_str
    if "localhost" in admin_url or "127.0.0.1" in admin_url:
        warnings.append("HYDRA_ADMIN_URL points to localhost (may cause issues in containers)")

    if not settings.COOKIE_SECURE:
        warnings.append("COOKIE_SECURE is disabled (session cookies are sent over plain HTTP)")

    if settings.REMEMBER_FOR_SECONDS == 0:
        warnings.append("REMEMBER_FOR_SECONDS is 0: remembered decisions never expire")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "consent_whitelist": whitelist,
        "remember_for_seconds": settings.REMEMBER_FOR_SECONDS,
    }
