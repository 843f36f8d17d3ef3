"""Metrics aggregation shared by all VU runners."""

import threading
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

import structlog

from ..models.errors import ErrorType
from ..models.report import CheckCounts, MetricsSnapshot
from ..models.results import CheckResult, HttpResponse

logger = structlog.get_logger(__name__)


class MetricsAggregator:
    """Append-only collector of requests, latencies and check outcomes.

    Check results are folded into counters on ingestion and not retained.

    Every ingestion path takes the lock for a few counter updates only and
    never awaits while holding it, so concurrent runners (tasks or threads)
    cannot lose updates. ``snapshot`` holds the lock just long enough to
    copy the counters.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._requests_total = 0
        self._requests_by_vu: Dict[int, int] = defaultdict(int)
        self._requests_by_tag: Dict[str, int] = defaultdict(int)
        self._latencies: Dict[str, List[float]] = defaultdict(list)
        self._iterations = 0
        self._checks: Dict[str, CheckCounts] = {}
        self._errors: Dict[str, int] = defaultdict(int)
        self._check_results_total = 0
        self._vus_max = 0

    def record_request(self, vu_id: int, tag: str, response: Optional[HttpResponse] = None) -> None:
        """Count one request sent by ``vu_id``. Latency is kept when a response arrived."""
        with self._lock:
            self._requests_total += 1
            self._requests_by_vu[vu_id] += 1
            self._requests_by_tag[tag] += 1
            if response is not None:
                self._latencies[tag].append(response.latency_ms)

    def record_checks(self, results: Iterable[CheckResult]) -> None:
        """Update per-check and error counters from a batch of results."""
        results = list(results)
        with self._lock:
            for result in results:
                counts = self._checks.get(result.name)
                if counts is None:
                    counts = self._checks[result.name] = CheckCounts()
                if result.passed:
                    counts.passed += 1
                else:
                    counts.failed += 1
                if result.error_type is not None:
                    self._errors[result.error_type.value] += 1
                self._check_results_total += 1

    def record_iteration(self) -> None:
        with self._lock:
            self._iterations += 1

    def record_error(self, error_type: ErrorType) -> None:
        with self._lock:
            self._errors[error_type.value] += 1

    def observe_vus(self, running: int) -> None:
        """Track the peak number of concurrently running VUs."""
        with self._lock:
            if running > self._vus_max:
                self._vus_max = running

    def snapshot(self) -> MetricsSnapshot:
        """Return a consistent point-in-time copy of all counters."""
        with self._lock:
            return MetricsSnapshot(
                requests_total=self._requests_total,
                requests_by_vu=dict(self._requests_by_vu),
                requests_by_tag=dict(self._requests_by_tag),
                iterations=self._iterations,
                checks={
                    name: CheckCounts(passed=c.passed, failed=c.failed)
                    for name, c in self._checks.items()
                },
                errors=dict(self._errors),
                latencies_by_tag={tag: list(samples) for tag, samples in self._latencies.items()},
                check_results_total=self._check_results_total,
                vus_max=self._vus_max,
            )
