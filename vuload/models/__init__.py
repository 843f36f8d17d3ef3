"""Data models for the load engine."""

from .errors import (
    ConfigurationError,
    DependencyMissing,
    ErrorDetail,
    ErrorReport,
    ErrorType,
    LoadEngineException,
    MalformedResponse,
    TransportError,
)
from .report import (
    CheckCounts,
    LatencySummary,
    LoadTestReport,
    MetricsSnapshot,
    percentile,
)
from .results import CheckResult, HttpResponse, RequestDescriptor, VirtualUser
from .scenario import Scenario, Stage, load_scenario, parse_duration

__all__ = [
    # Errors
    "ConfigurationError",
    "DependencyMissing",
    "ErrorDetail",
    "ErrorReport",
    "ErrorType",
    "LoadEngineException",
    "MalformedResponse",
    "TransportError",
    # Report
    "CheckCounts",
    "LatencySummary",
    "LoadTestReport",
    "MetricsSnapshot",
    "percentile",
    # Results
    "CheckResult",
    "HttpResponse",
    "RequestDescriptor",
    "VirtualUser",
    # Scenario
    "Scenario",
    "Stage",
    "load_scenario",
    "parse_duration",
]
