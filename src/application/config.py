"""Application configuration using Pydantic Settings."""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = "lumo-relay"
    app_version: str = "0.1.0"
    debug: bool = False

    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 10000

    # Logging
    log_level: str = "INFO"

    # Relay settings
    heartbeat_interval: float = 30.0
    session_max_idle: float = 60 * 60.0
    session_sweep_interval: float = 60.0

    # Client settings
    relay_url: str = "ws://localhost:10000"
    connect_timeout: float = 10.0
    reconnect_delay: float = 3.0

    # Playback engine settings
    base_scroll_rate: float = 150.0  # pixels per second at 100% speed
    ease_in_duration: float = 1.5
    frame_rate: float = 60.0
    seek_lines: int = 3

    # Local script store (directory of JSON scripts)
    scripts_dir: Optional[str] = None


# Create a singleton instance
settings = Settings()
