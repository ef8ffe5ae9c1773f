"""
Core configuration module for the Cloudflare Token Manager.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the TOKEN_MANAGER_ prefix.

Pattern: Pydantic BaseSettings with an lru_cache singleton accessor.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All fields use the TOKEN_MANAGER_ prefix for environment variables.
    Example: TOKEN_MANAGER_API_KEY=secret
    """

    # =========================================================================
    # Service Configuration
    # =========================================================================
    service_name: str = Field(
        default="cloudflare-token-manager",
        description="Name of the service for logging and identification",
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level for structured logging",
    )
    cors_origins: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins",
    )

    # =========================================================================
    # Secrets
    # Pattern: SecretStr masks values in logs/repr, use .get_secret_value()
    # =========================================================================
    api_key: SecretStr = Field(
        default=SecretStr(""),
        description="Shared secret expected in the X-API-Key header",
    )
    cloudflare_bootstrap_token: SecretStr = Field(
        default=SecretStr(""),
        description="Privileged Cloudflare token used for every provider call",
    )

    # =========================================================================
    # Cloudflare API
    # =========================================================================
    cloudflare_api_base: str = Field(
        default="https://api.cloudflare.com/client/v4",
        description="Base URL of the Cloudflare REST API",
    )
    cloudflare_timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=120.0,
        description="Timeout in seconds for a single Cloudflare API call",
    )
    permission_cache_ttl_seconds: float = Field(
        default=300.0,
        ge=0.0,
        description="Time-to-live of the cached permission group catalog",
    )
    tool_timeout_seconds: float = Field(
        default=45.0,
        ge=1.0,
        le=300.0,
        description="Ceiling for one complete tool invocation",
    )

    # =========================================================================
    # Account Restriction & Audit
    # =========================================================================
    allowed_account_ids: str = Field(
        default="",
        description="Comma-separated account IDs tools may touch (empty = all)",
    )
    enable_audit_log: bool = Field(
        default=False,
        description="Emit structured audit events for mutating operations",
    )

    # =========================================================================
    # Rate Limiting
    # =========================================================================
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis URL for the shared rate-limit store (unset = in-memory)",
    )
    rate_limit_per_minute: int = Field(
        default=10,
        ge=1,
        description="Maximum mutating token operations per window per client",
    )
    rate_limit_default_per_minute: int = Field(
        default=100,
        ge=1,
        description="Limit applied to operation classes without explicit config",
    )
    rate_limit_window_seconds: int = Field(
        default=60,
        ge=1,
        description="Sliding window length in seconds",
    )
    rate_limit_store_timeout_seconds: float = Field(
        default=2.0,
        gt=0.0,
        description="Timeout for one read or write against the rate-limit store",
    )

    # =========================================================================
    # Tracing
    # =========================================================================
    tracing_enabled: bool = Field(
        default=False,
        description="Configure an OpenTelemetry TracerProvider at startup",
    )

    model_config = {
        "env_prefix": "TOKEN_MANAGER_",
        "case_sensitive": False,
        "extra": "ignore",
    }

    # =========================================================================
    # Field Validators
    # =========================================================================
    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate Redis URL format; blank means not configured."""
        if v is None or not v.strip():
            return None
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError("Redis URL must start with redis:// or rediss://")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level: {v}")
        return level

    @property
    def allowed_accounts(self) -> list[str]:
        """Parsed account allow-list; empty when unrestricted."""
        return [a.strip() for a in self.allowed_account_ids.split(",") if a.strip()]

    @property
    def cors_origin_list(self) -> list[str]:
        """Allowed CORS origins; every origin is allowed in development."""
        if self.environment == "development":
            return ["*"]
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses functools.lru_cache to ensure only one Settings instance is created.

    Returns:
        Settings: The application settings instance.
    """
    return Settings()
