"""Application settings using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PWRMON_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra environment variables
    )

    # HTTP Configuration
    api_prefix: str = Field(default="/api", description="Prefix for all API routes")
    host: str = Field(default="0.0.0.0", description="Bind address for the HTTP server")
    port: int = Field(default=3000, description="Port for the HTTP server")

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./pwrmon.db",
        description="Database connection URL",
    )
    db_timeout: float = Field(
        default=5.0,
        description="Upper bound in seconds for connecting to or waiting on the database",
    )
    db_pool_size: int = Field(default=10, description="Connection pool size")

    # Authentication
    jwt_secret: SecretStr = Field(
        default=SecretStr("change-me"),
        description="Secret used to sign user bearer tokens",
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    jwt_expire_minutes: int = Field(
        default=7 * 24 * 60,
        description="Bearer token lifetime in minutes",
    )

    # Ingestion Configuration
    bulk_max_readings: int = Field(
        default=100,
        description="Maximum readings accepted in one bulk submission",
    )
    zero_optional_is_absent: bool = Field(
        default=True,
        description="Treat a zero power_factor/frequency/temperature/humidity as not reported",
    )
    reading_interval_seconds: int = Field(
        default=30,
        description="Reading interval advertised to devices",
    )

    # Statistics Configuration
    energy_tariff: float = Field(
        default=0.12,
        description="Price per kWh used for cost estimates",
    )
    retention_days: int = Field(
        default=365,
        description="Readings older than this many days are removed by prune-readings",
    )

    # Logging Configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (logs to console if not set)",
    )
    log_max_bytes: int = Field(
        default=10 * 1024 * 1024,  # 10 MB
        description="Maximum log file size before rotation",
    )
    log_backup_count: int = Field(
        default=5,
        description="Number of backup log files to keep",
    )
    log_json: bool | None = Field(
        default=None,
        description="Force JSON log output (auto-detected from the TTY when unset)",
    )

    @property
    def is_sqlite(self) -> bool:
        """Check if the configured database is SQLite."""
        return self.database_url.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
