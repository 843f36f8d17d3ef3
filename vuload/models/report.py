"""Data models for aggregated metrics and the final load test report."""

import statistics
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List


def percentile(samples: List[float], fraction: float) -> float:
    """Nearest-rank percentile of ``samples`` (0.0 when empty)."""
    if not samples:
        return 0.0
    sorted_samples = sorted(samples)
    idx = int(len(sorted_samples) * fraction)
    return sorted_samples[min(idx, len(sorted_samples) - 1)]


@dataclass
class LatencySummary:
    """Latency statistics in milliseconds."""

    count: int = 0
    avg_ms: float = 0.0
    min_ms: float = 0.0
    med_ms: float = 0.0
    max_ms: float = 0.0
    p90_ms: float = 0.0
    p95_ms: float = 0.0
    p99_ms: float = 0.0

    @classmethod
    def from_samples(cls, samples: List[float]) -> "LatencySummary":
        if not samples:
            return cls()
        return cls(
            count=len(samples),
            avg_ms=statistics.mean(samples),
            min_ms=min(samples),
            med_ms=statistics.median(samples),
            max_ms=max(samples),
            p90_ms=percentile(samples, 0.90),
            p95_ms=percentile(samples, 0.95),
            p99_ms=percentile(samples, 0.99),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "avg_ms": round(self.avg_ms, 2),
            "min_ms": round(self.min_ms, 2),
            "med_ms": round(self.med_ms, 2),
            "max_ms": round(self.max_ms, 2),
            "p90_ms": round(self.p90_ms, 2),
            "p95_ms": round(self.p95_ms, 2),
            "p99_ms": round(self.p99_ms, 2),
        }


@dataclass
class CheckCounts:
    """Pass/fail counters for one named check."""

    passed: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.passed + self.failed

    @property
    def pass_rate(self) -> float:
        if self.total == 0:
            return 0.0
        return (self.passed / self.total) * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "passed": self.passed,
            "failed": self.failed,
            "pass_rate": round(self.pass_rate, 2),
        }


@dataclass
class MetricsSnapshot:
    """Point-in-time copy of the aggregated counters."""

    requests_total: int = 0
    requests_by_vu: Dict[int, int] = field(default_factory=dict)
    requests_by_tag: Dict[str, int] = field(default_factory=dict)
    iterations: int = 0
    checks: Dict[str, CheckCounts] = field(default_factory=dict)
    errors: Dict[str, int] = field(default_factory=dict)
    latencies_by_tag: Dict[str, List[float]] = field(default_factory=dict)
    check_results_total: int = 0
    vus_max: int = 0

    @property
    def checks_passed(self) -> int:
        return sum(c.passed for c in self.checks.values())

    @property
    def checks_failed(self) -> int:
        return sum(c.failed for c in self.checks.values())

    @property
    def latencies(self) -> List[float]:
        samples: List[float] = []
        for tag_samples in self.latencies_by_tag.values():
            samples.extend(tag_samples)
        return samples


@dataclass
class LoadTestReport:
    """Complete load test report."""

    test_id: str
    scenario: Dict[str, Any]
    start_time: datetime
    end_time: datetime
    metrics: MetricsSnapshot
    cancelled: bool = False
    forced_stops: int = 0

    @property
    def duration_seconds(self) -> float:
        return (self.end_time - self.start_time).total_seconds()

    @property
    def throughput_rps(self) -> float:
        if self.duration_seconds <= 0:
            return 0.0
        return self.metrics.requests_total / self.duration_seconds

    @property
    def checks_pass_rate(self) -> float:
        total = self.metrics.checks_passed + self.metrics.checks_failed
        if total == 0:
            return 0.0
        return (self.metrics.checks_passed / total) * 100

    @property
    def latency(self) -> LatencySummary:
        return LatencySummary.from_samples(self.metrics.latencies)

    def latency_by_tag(self) -> Dict[str, LatencySummary]:
        return {
            tag: LatencySummary.from_samples(samples)
            for tag, samples in self.metrics.latencies_by_tag.items()
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "test_id": self.test_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration_seconds": round(self.duration_seconds, 2),
            "cancelled": self.cancelled,
            "forced_stops": self.forced_stops,
            "scenario": self.scenario,
            "summary": {
                "requests_total": self.metrics.requests_total,
                "iterations": self.metrics.iterations,
                "throughput_rps": round(self.throughput_rps, 2),
                "vus_max": self.metrics.vus_max,
                "checks_passed": self.metrics.checks_passed,
                "checks_failed": self.metrics.checks_failed,
                "checks_pass_rate": round(self.checks_pass_rate, 2),
            },
            "requests_by_tag": dict(self.metrics.requests_by_tag),
            "checks": {name: c.to_dict() for name, c in self.metrics.checks.items()},
            "errors": dict(self.metrics.errors),
            "latency": {
                "overall": self.latency.to_dict(),
                "by_tag": {tag: s.to_dict() for tag, s in self.latency_by_tag().items()},
            },
        }
