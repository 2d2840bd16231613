"""Application configuration using pydantic-settings."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MB = 1024 * 1024
GB = 1024 * MB


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SENDANY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "SendAny"
    version: str = "0.1.0"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Paths
    config_path: Path = Field(
        default=Path("/config"),
        description="Path for configuration files and the SQLite database",
    )

    # Database
    database_url: str | None = Field(
        default=None,
        description="Database connection URL (defaults to SQLite under config_path)",
    )

    # CORS
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins",
    )

    # Identity - the upstream session layer resolves the user and forwards the id
    user_id_header: str = Field(
        default="X-SendAny-User",
        description="Trusted request header carrying the authenticated user id",
    )

    # Google OAuth (from https://console.cloud.google.com/apis/credentials)
    google_client_id: str | None = Field(
        default=None,
        description="Google OAuth client ID",
    )
    google_client_secret: str | None = Field(
        default=None,
        description="Google OAuth client secret",
    )
    google_redirect_uri: str = Field(
        default="http://localhost:3000/api/auth/google/callback",
        description="OAuth redirect URI registered with Google",
    )

    # Token encryption (Fernet key, url-safe base64)
    encryption_key: str | None = Field(
        default=None,
        description="Fernet key used to encrypt OAuth tokens at rest",
    )

    # Storage ceilings (bytes)
    max_file_size: int = Field(
        default=100 * MB,
        gt=0,
        description="Maximum size of a single uploaded file",
    )
    max_workspace_size: int = Field(
        default=500 * MB,
        gt=0,
        description="Maximum total size of files in one workspace",
    )
    max_user_storage: int = Field(
        default=5 * GB,
        gt=0,
        description="Maximum total storage across all of a user's workspaces",
    )

    # Expiry reaper
    cleanup_api_key: str | None = Field(
        default=None,
        description="Shared secret for the scheduled cleanup endpoint (X-API-Key header)",
    )
    reaper_enabled: bool = Field(
        default=True,
        description="Run the expiry reaper periodically inside the application",
    )
    reaper_interval_minutes: int = Field(
        default=60,
        ge=1,
        le=1440,
        description="Minutes between reaper passes (1-1440)",
    )
    reaper_initial_delay_seconds: int = Field(
        default=60,
        ge=0,
        description="Delay before the first reaper pass after startup",
    )

    @property
    def google_oauth_configured(self) -> bool:
        """Check if Google OAuth client credentials are configured."""
        return bool(self.google_client_id and self.google_client_secret)

    @property
    def db_path(self) -> Path:
        """Get the SQLite database file path."""
        return self.config_path / "sendany.db"


# Global settings instance
settings = Settings()
