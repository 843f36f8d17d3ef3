"""Engine runtime configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings


class EngineConfig(BaseSettings):
    """Control loop, HTTP client and report settings."""

    control_interval: float = Field(default=1.0, gt=0, alias="control_interval_seconds")
    request_timeout: float = Field(default=60.0, gt=0, alias="request_timeout_seconds")
    max_connections: int = Field(default=200, ge=1)
    output_dir: str = Field(default="./load_test_results")

    class Config:
        env_prefix = ""
        extra = "ignore"
