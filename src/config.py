"""
Centralized configuration management for Folio.

This module provides a Pydantic Settings-based configuration system that:
- Validates environment variables at startup
- Provides type coercion (strings to ints, bools, etc.)
- Groups related settings for better organization
- Exposes methods to check if features are enabled
- Supports .env file loading

Usage:
    from src.config import get_settings

    settings = get_settings()
    if settings.is_supabase_configured:
        ...
"""

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# Database Settings (Supabase)
# =============================================================================


class DatabaseSettings(BaseSettings):
    """Configuration for Supabase database."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL",
    )
    supabase_key: Optional[SecretStr] = Field(
        default=None,
        description="Supabase anon/public key",
    )
    supabase_service_role_key: Optional[SecretStr] = Field(
        default=None,
        alias="supabase_service_key",
        description="Supabase service role key (for admin operations)",
    )

    @property
    def is_configured(self) -> bool:
        """Check if Supabase is properly configured."""
        return bool(self.supabase_url and (self.supabase_key or self.supabase_service_role_key))


# =============================================================================
# Auth Settings (Supabase Auth JWTs)
# =============================================================================


class AuthSettings(BaseSettings):
    """Configuration for verifying Supabase Auth access tokens."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    supabase_jwt_secret: Optional[SecretStr] = Field(
        default=None,
        description="HS256 secret used by Supabase Auth to sign access tokens",
    )
    supabase_jwks_url: Optional[str] = Field(
        default=None,
        description="JWKS URL for asymmetric Supabase signing keys",
    )
    supabase_jwt_audience: Optional[str] = Field(
        default="authenticated",
        description="Expected `aud` claim (empty to skip the check)",
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.supabase_jwt_secret or self.supabase_jwks_url)


# =============================================================================
# Object Storage Settings (S3-compatible)
# =============================================================================


class StorageSettings(BaseSettings):
    """Configuration for S3-compatible object storage."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    s3_bucket: Optional[str] = Field(
        default=None,
        description="Bucket holding uploaded assets",
    )
    s3_region: str = Field(
        default="auto",
        description="Bucket region",
    )
    s3_endpoint: Optional[str] = Field(
        default=None,
        description="Custom endpoint for S3-compatible providers",
    )
    s3_access_key: Optional[SecretStr] = Field(
        default=None,
        description="Access key ID",
    )
    s3_secret_key: Optional[SecretStr] = Field(
        default=None,
        description="Secret access key",
    )
    s3_cdn_url: Optional[str] = Field(
        default=None,
        description="Public CDN base URL; asset URLs must share its origin",
    )
    s3_presigned_url_expiry: int = Field(
        default=3600,
        ge=60,
        le=7 * 24 * 3600,
        description="Lifetime of signed upload URLs in seconds",
    )
    s3_tracked_prefixes: str = Field(
        default="assets/,avatars/",
        description="Comma-separated key prefixes managed by reference tracking",
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.s3_bucket)

    @property
    def tracked_prefixes(self) -> List[str]:
        return [p.strip() for p in self.s3_tracked_prefixes.split(",") if p.strip()]


# =============================================================================
# Versioning Settings
# =============================================================================


class VersioningSettings(BaseSettings):
    """Configuration for similarity-gated saves and autosave timers."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_prefix="VERSIONING_",
    )

    similarity_threshold: float = Field(
        default=0.85,
        ge=0.0,
        le=1.0,
        description="Edits at or above this similarity update the latest version in place",
    )
    autosave_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Debounce before a content autosave is written",
    )
    snapshot_delay_seconds: float = Field(
        default=1.5,
        ge=0.0,
        description="Delay after a successful autosave before the version snapshot",
    )


# =============================================================================
# Asset Garbage Collection Settings
# =============================================================================


class AssetGCSettings(BaseSettings):
    """Configuration for the asset deletion queue worker."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    asset_gc_secret: Optional[SecretStr] = Field(
        default=None,
        description="Shared secret expected in the X-GC-Secret header",
    )
    asset_gc_default_batch_size: int = Field(
        default=25,
        ge=1,
        le=100,
        description="Jobs processed per run when the caller does not say",
    )
    asset_gc_max_batch_size: int = Field(
        default=100,
        ge=1,
        description="Upper bound on jobs processed per run",
    )
    asset_gc_base_retry_seconds: int = Field(
        default=60,
        ge=1,
        description="Base delay for retry backoff",
    )
    asset_gc_max_retry_seconds: int = Field(
        default=3600,
        ge=1,
        description="Ceiling for retry backoff",
    )


# =============================================================================
# Security Settings
# =============================================================================


class SecuritySettings(BaseSettings):
    """Configuration for security features."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    dev_mode: bool = Field(
        default=False,
        description="Enable development mode (accepts X-User-ID instead of a JWT)",
    )
    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        description="Comma-separated list of allowed CORS origins",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def origins_list(self) -> List[str]:
        """Get parsed list of allowed origins."""
        return [
            origin.strip()
            for origin in self.allowed_origins.split(",")
            if origin.strip()
        ]


# =============================================================================
# Logging Settings
# =============================================================================


class LoggingSettings(BaseSettings):
    """Configuration for logging."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_format_json: bool = Field(
        default=False,
        description="Force JSON log format in development",
    )
    request_logging_enabled: bool = Field(
        default=True,
        description="Enable request logging middleware",
    )


# =============================================================================
# Monitoring Settings (Sentry)
# =============================================================================


class SentrySettings(BaseSettings):
    """Configuration for Sentry error tracking."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    sentry_dsn: Optional[str] = Field(
        default=None,
        description="Sentry DSN for error tracking",
    )
    sentry_environment: str = Field(
        default="development",
        description="Sentry environment name",
    )
    sentry_traces_sample_rate: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Sentry transaction sample rate (0.0 to 1.0)",
    )
    sentry_release: Optional[str] = Field(
        default="folio-api@1.0.0",
        description="Sentry release version",
    )
    server_name: str = Field(
        default="folio-api",
        description="Server name for Sentry",
    )

    @property
    def is_configured(self) -> bool:
        """Check if Sentry is configured."""
        return bool(self.sentry_dsn)


# =============================================================================
# Main Settings Class
# =============================================================================


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration groups.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    versioning: VersioningSettings = Field(default_factory=VersioningSettings)
    asset_gc: AssetGCSettings = Field(default_factory=AssetGCSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    sentry: SentrySettings = Field(default_factory=SentrySettings)

    @property
    def is_supabase_configured(self) -> bool:
        """Check if Supabase database is available."""
        return self.database.is_configured

    @property
    def is_storage_configured(self) -> bool:
        return self.storage.is_configured

    @property
    def is_sentry_configured(self) -> bool:
        """Check if Sentry error tracking is available."""
        return self.sentry.is_configured

    @property
    def is_production(self) -> bool:
        return self.security.is_production

    @property
    def is_dev_mode(self) -> bool:
        return self.security.dev_mode

    def get_config_summary(self) -> dict:
        """
        Get a summary of configuration status for logging.

        Returns configuration status WITHOUT exposing any secrets.
        """
        return {
            "environment": self.security.environment,
            "dev_mode": self.is_dev_mode,
            "supabase_configured": self.is_supabase_configured,
            "auth_configured": self.auth.is_configured,
            "storage_configured": self.is_storage_configured,
            "cdn_url": self.storage.s3_cdn_url,
            "asset_gc_enabled": bool(self.asset_gc.asset_gc_secret),
            "similarity_threshold": self.versioning.similarity_threshold,
            "sentry_configured": self.is_sentry_configured,
            "allowed_origins": self.security.origins_list,
            "log_level": self.logging.log_level,
        }


# =============================================================================
# Settings Singleton
# =============================================================================


@lru_cache()
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload settings.

    Returns:
        Validated Settings instance

    Raises:
        ValidationError: If required configuration is missing or invalid
    """
    return Settings()


def reload_settings() -> Settings:
    """
    Reload settings from environment.

    This clears the cache and returns fresh settings.
    Useful for testing or after environment changes.
    """
    get_settings.cache_clear()
    return get_settings()
