"""Scenario configuration model for the ramping-VU executor."""

import math
import re
from typing import Any, Literal, Mapping, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigurationError, ErrorDetail

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}

# k6-style keys accepted by load_scenario
_KEY_ALIASES = {
    "startVUs": "start_vus",
    "gracefulStop": "graceful_stop",
    "thinkTime": "think_time",
    "baseUrl": "base_url",
    "includeTimestamp": "include_timestamp",
}


def parse_duration(value: Any) -> float:
    """Parse a duration into seconds.

    Numbers are taken as seconds. Strings use k6 notation: a bare number
    (``"0"``, ``"1.5"``) or unit-suffixed parts such as ``"500ms"``,
    ``"28s"``, ``"1m30s"`` or ``"1h"``.

    Raises:
        ValueError: If the value is not a valid duration.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return _finite(float(value), value)
    if not isinstance(value, str):
        raise ValueError(f"Invalid duration: {value!r}")

    text = value.strip()
    if not text:
        raise ValueError("Duration must not be empty")
    if text.startswith("-"):
        raise ValueError(f"Duration must not be negative: {value!r}")

    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        return _finite(seconds, value)

    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()

    if position != len(text) or position == 0:
        raise ValueError(f"Invalid duration: {value!r}")
    return _finite(total, value)


def _finite(seconds: float, value: Any) -> float:
    if not math.isfinite(seconds):
        raise ValueError(f"Duration must be finite: {value!r}")
    return seconds


class Stage(BaseModel):
    """One segment of the ramp profile."""

    model_config = ConfigDict(frozen=True)

    target: int = Field(..., ge=0, description="Target VU count at the end of the stage")
    duration: float = Field(..., ge=0, description="Stage length in seconds")

    @field_validator("duration", mode="before")
    @classmethod
    def _parse_duration(cls, v):
        return parse_duration(v)


class Scenario(BaseModel):
    """Immutable ramping-VU scenario."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    stages: Tuple[Stage, ...] = Field(..., min_length=1)
    start_vus: int = Field(default=1, ge=0)
    executor: Literal["ramping-vus"] = "ramping-vus"
    think_time: float = Field(default=0.1, ge=0, description="Pause between iterations in seconds")
    base_url: str = Field(default="http://localhost:1323")
    message: str = Field(default="Hello, World!")
    graceful_stop: float = Field(
        default=30.0, ge=0, description="Drain timeout in seconds"
    )
    include_timestamp: bool = Field(
        default=True,
        description="Send the POST response timestamp with the GET request",
    )

    @field_validator("think_time", "graceful_stop", mode="before")
    @classmethod
    def _parse_durations(cls, v):
        return parse_duration(v)

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v.rstrip("/")

    @property
    def total_duration(self) -> float:
        """Sum of all stage durations in seconds."""
        return sum(stage.duration for stage in self.stages)

    @property
    def max_target(self) -> int:
        return max([self.start_vus] + [stage.target for stage in self.stages])

    def stage_boundaries(self) -> list:
        """Return ``(start, end, stage)`` for every stage in order."""
        boundaries = []
        start = 0.0
        for stage in self.stages:
            end = start + stage.duration
            boundaries.append((start, end, stage))
            start = end
        return boundaries

    def to_dict(self) -> dict:
        return {
            "executor": self.executor,
            "start_vus": self.start_vus,
            "stages": [{"target": s.target, "duration": s.duration} for s in self.stages],
            "think_time": self.think_time,
            "base_url": self.base_url,
            "graceful_stop": self.graceful_stop,
            "include_timestamp": self.include_timestamp,
            "total_duration": self.total_duration,
        }


def load_scenario(data: Mapping[str, Any]) -> Scenario:
    """Build and validate a Scenario from a plain mapping.

    Accepts both snake_case and k6 camelCase keys.

    Raises:
        ConfigurationError: If any value is invalid.
    """
    if not isinstance(data, Mapping):
        raise ConfigurationError("Scenario configuration must be a mapping")

    normalized = {_KEY_ALIASES.get(key, key): value for key, value in data.items()}

    try:
        return Scenario.model_validate(normalized)
    except ValidationError as e:
        details = [
            ErrorDetail(
                field=".".join(str(part) for part in error["loc"]),
                message=error["msg"],
                code=error["type"],
            )
            for error in e.errors()
        ]
        summary = "; ".join(f"{d.field}: {d.message}" for d in details)
        raise ConfigurationError(f"Invalid scenario: {summary}", details=details) from e
