"""Virtual user iteration loop."""

import asyncio
from enum import Enum
from typing import Dict, List, Optional, Sequence

import structlog

from ..models.errors import DependencyMissing, LoadEngineException, MalformedResponse
from ..models.results import CheckResult, HttpResponse, RequestDescriptor, VirtualUser
from .checks import Check, CheckEvaluator, default_checks
from .client import LoadTestClient
from .metrics import MetricsAggregator
from .requests import GET_TAG, RequestSpecBuilder

logger = structlog.get_logger(__name__)


class VUState(str, Enum):
    """Lifecycle of a VU runner."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class VURunner:
    """Runs one virtual user's iterations until told to stop.

    Each iteration sends the POST, evaluates its checks, builds and sends
    the GET (skipped when the POST did not yield what the GET needs),
    evaluates its checks and then waits for the think-time. The stop
    signal is level-triggered: it is checked before every iteration and
    interrupts the think-time wait, but an iteration that already started
    always runs to completion.
    """

    def __init__(
        self,
        vu: VirtualUser,
        client: LoadTestClient,
        builder: RequestSpecBuilder,
        metrics: MetricsAggregator,
        think_time: float = 0.1,
        evaluator: Optional[CheckEvaluator] = None,
        checks: Optional[Dict[str, Sequence[Check]]] = None,
    ):
        self.vu = vu
        self.client = client
        self.builder = builder
        self.metrics = metrics
        self.think_time = think_time
        self.evaluator = evaluator or CheckEvaluator()
        self.checks = checks if checks is not None else default_checks()

        self._stop_event = asyncio.Event()
        self._state = VUState.IDLE
        self.iterations = 0
        self.requests_sent = 0

    @property
    def state(self) -> VUState:
        return self._state

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Signal the VU to stop after its current iteration."""
        self._stop_event.set()
        if self._state == VUState.RUNNING:
            self._state = VUState.STOPPING

    async def run(self) -> None:
        """Iterate until stopped."""
        if self._state != VUState.IDLE:
            raise RuntimeError(f"VU {self.vu.id} already started")

        self._state = VUState.STOPPING if self.stop_requested else VUState.RUNNING
        logger.debug("VU started", vu_id=self.vu.id)
        try:
            while not self._stop_event.is_set():
                await self.run_iteration()
                if await self._think():
                    break
        finally:
            self._state = VUState.STOPPED
            logger.debug("VU stopped", vu_id=self.vu.id, iterations=self.iterations)

    async def _think(self) -> bool:
        """Wait for the think-time. Returns True if stopped meanwhile."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.think_time)
            return True
        except asyncio.TimeoutError:
            return False

    async def run_iteration(self) -> List[CheckResult]:
        """Run one POST/GET pass and return its check results."""
        results: List[CheckResult] = []

        post_request = self.builder.build_post(self.vu)
        post_response = await self._step(post_request, results)

        try:
            get_request = self.builder.build_get(self.vu, post_response)
        except (DependencyMissing, MalformedResponse) as e:
            logger.debug("GET skipped", vu_id=self.vu.id, reason=e.error_type.value)
            self._record_failure(GET_TAG, e, results)
        else:
            await self._step(get_request, results)

        self.iterations += 1
        self.metrics.record_iteration()
        return results

    async def _step(self, request: RequestDescriptor, results: List[CheckResult]) -> Optional[HttpResponse]:
        """Send one request and evaluate its checks."""
        try:
            response = await self.client.send(request)
        except LoadEngineException as e:
            self.requests_sent += 1
            self.metrics.record_request(self.vu.id, request.tag)
            self._record_failure(request.tag, e, results)
            return None

        self.requests_sent += 1
        self.metrics.record_request(self.vu.id, request.tag, response)
        step_results = self.evaluator.evaluate(
            response, self.checks.get(request.tag, ()), vu_id=self.vu.id, tag=request.tag
        )
        self.metrics.record_checks(step_results)
        results.extend(step_results)
        return response

    def _record_failure(self, tag: str, error: LoadEngineException, results: List[CheckResult]) -> None:
        checks = self.checks.get(tag, ())
        if not checks:
            self.metrics.record_error(error.error_type)
            return
        step_results = self.evaluator.evaluate(None, checks, error=error, vu_id=self.vu.id, tag=tag)
        self.metrics.record_checks(step_results)
        results.extend(step_results)
