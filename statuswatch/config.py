"""
Configuration management using pydantic-settings.
All settings loaded from environment variables (12-factor app).
"""

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Trigger authentication
    cron_secret: str = Field(default="", description="Bearer secret required by the ingest trigger")

    # Upstream status API
    upstream_status_api_url: str = Field(default="", description="Upstream status API URL")
    upstream_api_token: str = Field(
        default="", description="Bearer token for the upstream API (falls back to cron_secret)"
    )
    upstream_timeout_seconds: float = Field(
        default=10.0, gt=0.0, description="Upstream fetch deadline"
    )

    # Notifications
    discord_webhook_url: str = Field(default="", description="Webhook URL for transition alerts")
    notification_timeout_seconds: float = Field(
        default=5.0, gt=0.0, description="Webhook delivery timeout"
    )
    notification_footer: str = Field(
        default="StatusWatch Monitor", description="Footer text on notifications"
    )

    # Classification
    latency_degraded_ms: int = Field(
        default=1500, ge=0, description="Latency above which a service is degraded"
    )
    success_status_min: int = Field(default=200, description="Lowest accepted status code")
    success_status_max: int = Field(default=299, description="Highest accepted status code")

    # Read path
    history_window_hours: float = Field(default=2.0, gt=0.0, description="History window")
    history_max_points: int = Field(default=60, ge=1, description="History points per service")
    incident_limit: int = Field(default=10, ge=1, description="Incidents on the status view")

    # Database
    db_path: str = Field(default="./data/statuswatch.duckdb", description="DuckDB file path")

    # API
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    api_reload: bool = Field(default=False, description="Enable hot reload")
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="CORS allowed origins (comma-separated)",
    )

    # Logging
    log_level: str = Field(default="info", description="Log level")
    log_format: str = Field(default="json", description="Log format (json|console)")

    # Development
    dev_mode: bool = Field(default=True, description="Development mode")
    testing: bool = Field(default=False, description="Testing mode")

    @field_validator("cors_origins")
    @classmethod
    def parse_cors_origins(cls, v: str) -> List[str]:
        """Parse comma-separated CORS origins."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @property
    def upstream_bearer_token(self) -> str:
        """Token sent to the upstream API."""
        return self.upstream_api_token or self.cron_secret


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure singleton behavior.
    """
    return Settings()
