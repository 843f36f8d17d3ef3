"""Load engine services.

Leaves first: request building, checks, the HTTP client and metrics
aggregation feed the VU runner, which the ramp scheduler drives and the
engine controller orchestrates.
"""

from .checks import Check, CheckEvaluator, default_checks, status_check
from .client import LoadTestClient
from .engine import EngineController, EngineState
from .metrics import MetricsAggregator
from .report import ReportGenerator
from .requests import RequestSpecBuilder
from .runner import VURunner, VUState
from .scheduler import RampScheduler, desired_vus

__all__ = [
    "Check",
    "CheckEvaluator",
    "default_checks",
    "status_check",
    "LoadTestClient",
    "EngineController",
    "EngineState",
    "MetricsAggregator",
    "ReportGenerator",
    "RequestSpecBuilder",
    "VURunner",
    "VUState",
    "RampScheduler",
    "desired_vus",
]
