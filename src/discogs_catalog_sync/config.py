"""Configuration models for discogs-catalog-sync."""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator


class DiscogsConfig(BaseModel):
    """Connection settings for the Discogs API.

    Username and token are optional at load time. The client checks them
    on every call so a missing credential surfaces where it is used.
    """

    base_url: str = "https://api.discogs.com"
    username: str | None = None
    api_token: str | None = None
    collection_folder_id: int = 1  # "Uncategorized"
    suggestions_folder_id: int = 8797697
    page_size: int = 100
    page_delay_seconds: float = 1.0  # Discogs allows 60 authenticated requests/minute
    timeout_seconds: float = 30.0
    user_agent: str = "DiscogsCatalogSync/0.1"

    @property
    def has_api_token(self) -> bool:
        return bool(self.api_token)


class SyncConfig(BaseModel):
    """Background sync behavior."""

    sync_on_startup: bool = True
    cron_sync_enabled: bool = True
    startup_delay_seconds: float = 5.0
    daily_run_time: str = "00:00"  # HH:MM, UTC
    default_user_id: str | None = None  # Falls back to the Discogs username

    @field_validator("daily_run_time")
    @classmethod
    def _check_run_time(cls, value: str) -> str:
        hours, _, minutes = value.partition(":")
        if not (hours.isdigit() and minutes.isdigit() and 0 <= int(hours) < 24 and 0 <= int(minutes) < 60):
            raise ValueError(f"daily_run_time must be HH:MM, got {value!r}")
        return value

    @property
    def daily_run_hour_minute(self) -> tuple[int, int]:
        hours, _, minutes = self.daily_run_time.partition(":")
        return int(hours), int(minutes)


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: str = "/data/discogs-catalog.db"
    journal_mode: str = "WAL"  # WAL, DELETE, TRUNCATE, MEMORY, OFF


class ServerSettings(BaseModel):
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 3000


class ApiConfig(BaseModel):
    """API access configuration."""

    api_key: str | None = None


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"


class Config(BaseModel):
    """Root configuration model."""

    discogs: DiscogsConfig = Field(default_factory=DiscogsConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    server: ServerSettings = Field(default_factory=ServerSettings)
    api: ApiConfig = Field(default_factory=ApiConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.model_validate(data or {})

    @property
    def default_user_id(self) -> str | None:
        """User id that scheduled syncs run for."""
        return self.sync.default_user_id or self.discogs.username


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    if _config is None:
        raise RuntimeError("Configuration not loaded. Call load_config() first.")
    return _config


def load_config(path: str | Path) -> Config:
    """Load configuration from file and set as global."""
    global _config
    _config = Config.from_yaml(path)
    return _config


def set_config(config: Config) -> Config:
    """Install an already-built configuration as the global instance."""
    global _config
    _config = config
    return _config
