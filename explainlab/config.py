"""
Application Configuration using Pydantic Settings

Loads configuration from environment variables with sensible defaults.
Every value has a default so the service runs with no configuration present.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # ========================================================================
    # Postgres Connection Settings
    # ========================================================================
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DATABASE: str = "demo"
    POSTGRES_USER: str = "demo_app"
    POSTGRES_PASSWORD: str = "demo_app"

    # Connections are opened per batch / per request, so a bounded connect
    # timeout keeps an unreachable database from stalling the generator.
    POSTGRES_CONNECT_TIMEOUT: float = 5.0
    POSTGRES_COMMAND_TIMEOUT: float = 30.0

    # ========================================================================
    # Traffic Generator Settings
    # ========================================================================
    TRAFFIC_ENABLED: bool = True
    TRAFFIC_INTERVAL_SECONDS: int = Field(5, ge=0)
    TRAFFIC_QUERIES_PER_BATCH: int = Field(3, ge=1)
    # Delay before the first batch so the database can come up.
    TRAFFIC_WARMUP_SECONDS: float = Field(10.0, ge=0)
    # Optional JSON file ({"templates": [...]}) replacing the built-in pool.
    TRAFFIC_QUERY_POOL_FILE: str = ""

    # ========================================================================
    # Application Settings
    # ========================================================================
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 8080
    APP_RELOAD: bool = False

    # ========================================================================
    # Logging Settings
    # ========================================================================
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(levelprefix)s %(asctime)s - %(name)s - %(message)s"


# Create global settings instance
settings = Settings()


def settings_with_overrides(base: Settings, **overrides) -> Settings:
    """
    Return a new Settings with `overrides` applied and re-validated.

    Raises:
        pydantic.ValidationError: if an override breaks a field constraint
    """
    return Settings(**{**base.model_dump(), **overrides})
