"""Scenario lifecycle orchestration."""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

import structlog

from ..config import EngineConfig, settings
from ..models.report import LoadTestReport
from ..models.results import VirtualUser
from ..models.scenario import Scenario
from ..utils.id_generator import generate_test_id
from .checks import CheckEvaluator
from .client import LoadTestClient
from .metrics import MetricsAggregator
from .requests import RequestSpecBuilder
from .runner import VURunner
from .scheduler import IdentityFactory, RampScheduler

logger = structlog.get_logger(__name__)


class EngineState(str, Enum):
    """Engine lifecycle."""

    PENDING = "pending"
    RUNNING = "running"
    DRAINING = "draining"
    FINISHED = "finished"


class EngineController:
    """Runs one scenario from start to final report.

    Usage:
        engine = EngineController(load_scenario(config))
        report = await engine.run()

    ``cancel()`` may be called at any time (e.g. from a signal handler) to
    skip the remaining stages and go straight to the drain phase.
    """

    def __init__(
        self,
        scenario: Scenario,
        config: Optional[EngineConfig] = None,
        client: Optional[LoadTestClient] = None,
        metrics: Optional[MetricsAggregator] = None,
        identity_factory: Optional[IdentityFactory] = None,
        progress_callback: Optional[Callable[[str], None]] = None,
    ):
        self.scenario = scenario
        self.config = config or settings.engine
        self.client = client or LoadTestClient(
            timeout_seconds=self.config.request_timeout,
            max_connections=self.config.max_connections,
        )
        self.metrics = metrics or MetricsAggregator()
        self.builder = RequestSpecBuilder.from_scenario(scenario)
        self.evaluator = CheckEvaluator()
        self.progress_callback = progress_callback or (lambda x: None)

        self.scheduler = RampScheduler(
            scenario=scenario,
            runner_factory=self._create_runner,
            control_interval=self.config.control_interval,
            identity_factory=identity_factory,
            on_vus_changed=self.metrics.observe_vus,
            on_drain=self._enter_drain,
        )

        self.test_id = generate_test_id()
        self._state = EngineState.PENDING
        self._cancel_event: Optional[asyncio.Event] = None
        self._cancel_requested = False

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def running_vus(self) -> int:
        return self.scheduler.running_count

    def _log(self, message: str) -> None:
        """Log progress message."""
        self.progress_callback(message)

    def _create_runner(self, vu: VirtualUser) -> VURunner:
        return VURunner(
            vu=vu,
            client=self.client,
            builder=self.builder,
            metrics=self.metrics,
            think_time=self.scenario.think_time,
            evaluator=self.evaluator,
        )

    def cancel(self) -> None:
        """Stop the scenario early and drain all VUs."""
        if self._state == EngineState.FINISHED:
            return
        logger.info("Cancellation requested", test_id=self.test_id)
        self._cancel_requested = True
        if self._cancel_event is not None:
            self._cancel_event.set()

    async def run(self) -> LoadTestReport:
        """Run the scenario and return the final report."""
        if self._state != EngineState.PENDING:
            raise RuntimeError("Engine can only be run once")

        self._cancel_event = asyncio.Event()
        if self._cancel_requested:
            self._cancel_event.set()

        start_time = datetime.now(timezone.utc)
        self._state = EngineState.RUNNING
        logger.info("Scenario started", test_id=self.test_id, **self.scenario.to_dict())
        self._log(f"Starting scenario {self.test_id} against {self.scenario.base_url}")
        self._log(
            f"Stages: {len(self.scenario.stages)}, start VUs: {self.scenario.start_vus}, "
            f"peak VUs: {self.scenario.max_target}, "
            f"duration: {self.scenario.total_duration:.1f}s"
        )

        async with self.client:
            cancelled = await self.scheduler.run(self._cancel_event)

        end_time = datetime.now(timezone.utc)
        snapshot = self.metrics.snapshot()
        self._state = EngineState.FINISHED

        report = LoadTestReport(
            test_id=self.test_id,
            scenario=self.scenario.to_dict(),
            start_time=start_time,
            end_time=end_time,
            metrics=snapshot,
            cancelled=cancelled,
            forced_stops=self.scheduler.forced_stops,
        )

        logger.info(
            "Scenario finished",
            test_id=self.test_id,
            cancelled=cancelled,
            requests=snapshot.requests_total,
            iterations=snapshot.iterations,
            checks_failed=snapshot.checks_failed,
            forced_stops=self.scheduler.forced_stops,
        )
        self._log(f"Scenario complete: {self.test_id}")
        self._log(f"Duration: {report.duration_seconds:.1f}s")
        self._log(f"Total requests: {snapshot.requests_total}")
        self._log(f"Checks passed: {report.checks_pass_rate:.1f}%")
        return report

    def _enter_drain(self) -> None:
        self._state = EngineState.DRAINING
        self._log("Draining VUs...")
