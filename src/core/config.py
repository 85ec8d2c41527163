"""Application settings, read from the environment (prefix YAHTZEE_) or a .env file."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="YAHTZEE_", env_file=".env")

    # Database
    database_url: str = "sqlite:///./yahtzee.db"
    database_echo: bool = False

    # Rooms
    default_max_players: int = 4
    room_code_attempts: int = 10
    room_ttl_hours: int = 24

    # Polling: events kept per room
    event_log_size: int = 500

    # Turn supervision
    turn_timeout_seconds: float = 30.0

    # Persistence of final scores
    persistence_retries: int = 3

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"  # "console" or "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
