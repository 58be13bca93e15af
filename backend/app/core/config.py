"""
Configuration settings for the Drivers Tracking write API.

This module handles application configuration using Pydantic settings.
Required variables have no default, so a missing one aborts the process
as soon as the settings are loaded.
"""

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Application
    app_name: str = "Drivers Tracking Write API"
    api_version: str = "v1"
    node_env: Literal["development", "production"]
    host: str = "0.0.0.0"
    port: int
    log_level: Optional[str] = None

    # MongoDB Configuration
    mongo_uri: str
    mongo_db_name: str = "drivers_tracking"
    mongo_max_pool_size: int = 100
    mongo_min_pool_size: int = 20
    mongo_max_idle_time_ms: int = 60000
    mongo_server_selection_timeout_ms: int = 5000
    mongo_socket_timeout_ms: int = 45000

    # Ping retention (time-series TTL)
    ping_retention_days: int = Field(30, gt=0)

    @property
    def is_development(self) -> bool:
        return self.node_env == "development"

    @property
    def effective_log_level(self) -> str:
        if self.log_level:
            return self.log_level.upper()
        return "DEBUG" if self.is_development else "INFO"

    @property
    def ping_retention_seconds(self) -> int:
        return self.ping_retention_days * 24 * 60 * 60


settings = Settings()
