"""Configuration management using Pydantic."""

from __future__ import annotations

import warnings
from pathlib import Path

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from kleinanzeigen_session.utils.constants import BASE_URL, LOGIN_URL


class BrowserSettings(BaseSettings):
    """Browser connection and per-phase timeouts (seconds)."""

    model_config = SettingsConfigDict(
        env_prefix="BROWSER_",
        env_file=".env",
        extra="ignore",
    )

    endpoint: str | None = Field(
        default=None,
        description="Remote-debugging endpoint of a running Chrome (host:port)",
    )
    headless: bool = Field(default=True, description="Headless when self-launched")
    user_data_dir: str = Field(
        default="./data/chrome_profile",
        description="Profile directory when the browser is self-launched",
    )
    gdpr_timeout: float = Field(default=5.0, description="GDPR banner wait")
    form_timeout: float = Field(default=5.0, description="Credential form wait")
    navigation_timeout: float = Field(default=30.0, description="Page navigation")
    login_page_timeout: float = Field(default=90.0, description="Login page load")
    settle_delay: float = Field(default=2.0, description="Wait after page load")


class MarketplaceSettings(BaseSettings):
    """Marketplace URLs and account credentials."""

    model_config = SettingsConfigDict(
        env_prefix="KLEINANZEIGEN_",
        env_file=".env",
        extra="ignore",
    )

    base_url: str = Field(default=BASE_URL, description="Marketplace home page")
    login_url: str = Field(default=LOGIN_URL, description="Login form page")
    password: SecretStr | None = Field(
        default=None,
        description="Fallback password for accounts without their own entry",
    )
    credentials: dict[str, SecretStr] = Field(
        default_factory=dict,
        description="JSON map of e-mail to password",
    )


class StorageSettings(BaseSettings):
    """Cookie persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=".env",
        extra="ignore",
    )

    cookies_dir: Path = Field(
        default=Path("./data/cookies"),
        description="One JSON file per account lives here",
    )


class RefreshSettings(BaseSettings):
    """Background cookie refresh configuration."""

    model_config = SettingsConfigDict(
        env_prefix="REFRESH_",
        env_file=".env",
        extra="ignore",
    )

    interval_hours: float = Field(default=12.0, description="Sweep interval")
    threshold_hours: float = Field(
        default=6.0,
        description="Refresh accounts whose cookies expire within this window",
    )
    auto_start: bool = Field(
        default=False,
        description="Start the scheduler when the API starts",
    )
    verification_timeout: float = Field(
        default=60.0,
        description="Max seconds to wait for e-mail verification",
    )


class AuthSettings(BaseSettings):
    """API key authentication configuration."""

    model_config = SettingsConfigDict(
        env_prefix="API_",
        env_file=".env",
        extra="ignore",
    )

    auth_enabled: bool = Field(
        default=False,
        description="Enable/disable API key authentication",
    )
    keys: str = Field(default="", description="Comma-separated list of API keys")

    def get_keys_list(self) -> list[str]:
        """Convert comma-separated keys to list."""
        return [k.strip() for k in self.keys.split(",") if k.strip()]


class CORSSettings(BaseSettings):
    """CORS configuration for the dashboard."""

    model_config = SettingsConfigDict(
        env_prefix="CORS_",
        env_file=".env",
        extra="ignore",
    )

    enabled: bool = Field(default=True, description="Enable/disable CORS")
    allow_origins: str = Field(
        default="*",
        description="Comma-separated allowed origins (use * for all)",
    )

    def get_origins_list(self) -> list[str]:
        """Convert comma-separated origins to list."""
        if self.allow_origins == "*":
            return ["*"]
        return [o.strip() for o in self.allow_origins.split(",") if o.strip()]

    def is_permissive(self) -> bool:
        """Check if CORS allows all origins."""
        return self.allow_origins == "*"


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="SESSION_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    env: str = "development"
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = "INFO"
    log_json: bool = Field(default=False, description="Render logs as JSON")
    display_timezone: str = Field(
        default="Europe/Berlin",
        description="Timezone for human-readable expiry times",
    )
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    marketplace: MarketplaceSettings = Field(default_factory=MarketplaceSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    refresh: RefreshSettings = Field(default_factory=RefreshSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)

    @model_validator(mode="after")
    def validate_production_security(self) -> Settings:
        """Warn about insecure settings in production."""
        if self.is_production:
            for warning_msg in self.get_security_warnings():
                warnings.warn(warning_msg, UserWarning, stacklevel=2)
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.env == "production"

    def get_security_warnings(self) -> list[str]:
        """Get list of security warnings for current configuration."""
        warnings_list: list[str] = []
        if self.is_production:
            if not self.auth.auth_enabled:
                warnings_list.append("Authentication disabled in production")
            if self.cors.is_permissive():
                warnings_list.append("CORS allows all origins in production")
            if self.debug:
                warnings_list.append("Debug mode enabled in production")
        return warnings_list


# Singleton instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance (singleton)."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings (tests and reloads)."""
    global _settings  # noqa: PLW0603
    _settings = None
