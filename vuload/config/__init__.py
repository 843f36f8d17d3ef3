"""Configuration management for the load engine.

Settings are read from the environment (and an optional ``.env`` file)
and exposed both flat and as grouped views.

Usage:
    from vuload.config import settings

    settings.engine.control_interval
    settings.logging.level
    settings.think_time_seconds
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .engine import EngineConfig
from .logging import LoggingConfig


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore")

    # Scenario defaults used when a scenario is built from the command line
    target_base_url: str = Field(default="http://localhost:1323")
    think_time_seconds: float = Field(default=0.1, ge=0)
    graceful_stop_seconds: float = Field(default=30.0, ge=0)
    start_vus: int = Field(default=1, ge=0)

    # Engine
    control_interval_seconds: float = Field(
        default=1.0,
        gt=0,
        le=60,
        description="Seconds between ramp scheduler control ticks",
    )
    request_timeout_seconds: float = Field(default=60.0, gt=0, le=600)
    max_connections: int = Field(default=200, ge=1, le=10000)
    output_dir: str = Field(default="./load_test_results")

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")
    log_file: str | None = Field(default=None)
    log_max_size_mb: int = Field(default=100, ge=1)
    log_backup_count: int = Field(default=5, ge=1)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Ensure the log level is one the logging module knows."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        fmt = v.lower()
        if fmt not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")
        return fmt

    @field_validator("target_base_url")
    @classmethod
    def validate_target_base_url(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError("target_base_url must include the protocol")
        return v.rstrip("/")

    @property
    def engine(self) -> EngineConfig:
        """Access engine configuration group."""
        return EngineConfig(
            control_interval_seconds=self.control_interval_seconds,
            request_timeout_seconds=self.request_timeout_seconds,
            max_connections=self.max_connections,
            output_dir=self.output_dir,
        )

    @property
    def logging(self) -> LoggingConfig:
        """Access logging configuration group."""
        return LoggingConfig(
            log_level=self.log_level,
            log_format=self.log_format,
            log_file=self.log_file,
            log_max_size_mb=self.log_max_size_mb,
            log_backup_count=self.log_backup_count,
        )


settings = Settings()

__all__ = ["Settings", "settings", "EngineConfig", "LoggingConfig"]
