"""Ramping-VU scheduler.

Turns a staged concurrency profile into a desired VU count over time and
starts or stops VU runners at every control tick to match it.
"""

import asyncio
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

import structlog

from ..models.results import VirtualUser
from ..models.scenario import Scenario
from ..utils.id_generator import generate_identity
from .runner import VURunner, VUState

logger = structlog.get_logger(__name__)

RunnerFactory = Callable[[VirtualUser], VURunner]
IdentityFactory = Callable[[], Tuple[str, str]]


def desired_vus(scenario: Scenario, elapsed: float) -> int:
    """Desired number of running VUs ``elapsed`` seconds into the scenario.

    - Before the first stage begins (``elapsed <= 0``) it is ``start_vus``.
    - A zero-duration stage steps to its target as soon as ``elapsed`` is
      past the stage start, with no interpolation.
    - A stage with a duration interpolates linearly from the previous
      target to its own, rounded half up and clamped to the range between
      the two.
    - After the final stage it is the last target.
    """
    previous = scenario.start_vus
    if elapsed <= 0:
        return previous

    for start, end, stage in scenario.stage_boundaries():
        if stage.duration == 0:
            if elapsed > start:
                previous = stage.target
                continue
            return previous

        if elapsed < end:
            progress = (elapsed - start) / stage.duration
            value = math.floor(previous + (stage.target - previous) * progress + 0.5)
            low, high = min(previous, stage.target), max(previous, stage.target)
            return max(low, min(high, value))

        previous = stage.target

    return previous


@dataclass
class _ActiveVU:
    runner: VURunner
    task: asyncio.Task


class RampScheduler:
    """Owns the VU registry and drives it toward the desired count.

    The registry is only mutated by the scheduler. Scale-down stops the
    most recently spawned VUs first; stopped VUs finish their current
    iteration in the background while the registry moves on.
    """

    def __init__(
        self,
        scenario: Scenario,
        runner_factory: RunnerFactory,
        control_interval: float = 1.0,
        identity_factory: Optional[IdentityFactory] = None,
        on_vus_changed: Optional[Callable[[int], None]] = None,
        on_drain: Optional[Callable[[], None]] = None,
    ):
        self.scenario = scenario
        self.runner_factory = runner_factory
        self.control_interval = control_interval
        self.identity_factory = identity_factory or generate_identity
        self.on_vus_changed = on_vus_changed or (lambda running: None)
        self.on_drain = on_drain or (lambda: None)

        self._active: List[_ActiveVU] = []
        self._retired: List[_ActiveVU] = []
        self._next_id = 1
        self.spawn_log: List[int] = []
        self.stop_log: List[int] = []
        self.forced_stops = 0
        self.desired = 0

    @property
    def running_count(self) -> int:
        """VUs in the registry (not yet signalled to stop)."""
        return len(self._active)

    @property
    def runners(self) -> List[VURunner]:
        """Every runner ever spawned, in spawn order."""
        everyone = self._retired + self._active
        return sorted((a.runner for a in everyone), key=lambda r: r.vu.id)

    def vu_states(self) -> Dict[int, VUState]:
        return {runner.vu.id: runner.state for runner in self.runners}

    def _spawn(self, elapsed: float) -> None:
        user_id, session_id = self.identity_factory()
        vu = VirtualUser(id=self._next_id, user_id=user_id, session_id=session_id)
        self._next_id += 1

        runner = self.runner_factory(vu)
        task = asyncio.create_task(runner.run(), name=f"vu-{vu.id}")
        self._active.append(_ActiveVU(runner=runner, task=task))
        self.spawn_log.append(vu.id)
        logger.debug("Spawned VU", vu_id=vu.id, elapsed=round(elapsed, 3))

    def _stop_newest(self) -> None:
        active = self._active.pop()
        active.runner.stop()
        self._retired.append(active)
        self.stop_log.append(active.runner.vu.id)
        logger.debug("Stopping VU", vu_id=active.runner.vu.id)

    def reconcile(self, elapsed: float) -> int:
        """Bring the registry to the desired count for ``elapsed`` seconds.

        Returns:
            The desired VU count.
        """
        desired = desired_vus(self.scenario, elapsed)
        current = len(self._active)

        if desired > current:
            for _ in range(desired - current):
                self._spawn(elapsed)
        elif desired < current:
            for _ in range(current - desired):
                self._stop_newest()

        if desired != self.desired or desired != current:
            logger.info(
                "Reconciled VUs",
                elapsed=round(elapsed, 3),
                desired=desired,
                previous=current,
            )
        self.desired = desired
        self.on_vus_changed(len(self._active))
        return desired

    async def run(self, cancel_event: Optional[asyncio.Event] = None) -> bool:
        """Run the control loop until the scenario ends or is cancelled.

        Returns:
            True if the run was cancelled before the last stage finished.
        """
        cancel_event = cancel_event or asyncio.Event()
        loop = asyncio.get_running_loop()
        total = self.scenario.total_duration
        started = loop.time()
        finished = False

        logger.info(
            "Ramp scheduler started",
            stages=len(self.scenario.stages),
            start_vus=self.scenario.start_vus,
            total_duration=total,
        )
        self.reconcile(0.0)

        # Ticks fire on a fixed grid (n * control_interval) and the last one
        # lands exactly on the scenario end.
        tick = 0
        while not cancel_event.is_set():
            tick += 1
            nominal = min(tick * self.control_interval, total)
            delay = max(0.0, started + nominal - loop.time())
            try:
                await asyncio.wait_for(cancel_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
            if cancel_event.is_set():
                break
            if nominal >= total:
                finished = True
                break
            self.reconcile(nominal)

        cancelled = not finished
        if cancelled:
            logger.info("Scenario cancelled", elapsed=round(loop.time() - started, 3))

        await self.drain(self.scenario.graceful_stop)
        return cancelled

    async def drain(self, timeout: float) -> int:
        """Stop every VU and wait up to ``timeout`` seconds for them to finish.

        VUs still mid-iteration when the timeout expires are cancelled.

        Returns:
            Number of VUs that had to be cancelled.
        """
        self.on_drain()
        while self._active:
            self._stop_newest()
        self.on_vus_changed(0)

        pending = [a.task for a in self._retired if not a.task.done()]
        logger.info("Draining VUs", pending=len(pending), timeout=timeout)
        if pending:
            done, still_running = await asyncio.wait(pending, timeout=timeout)
            for task in still_running:
                task.cancel()
            if still_running:
                await asyncio.gather(*still_running, return_exceptions=True)
                self.forced_stops += len(still_running)
                logger.warning("Drain timed out, VUs cancelled", cancelled=len(still_running))

        for retired in self._retired:
            if retired.task.done() and not retired.task.cancelled():
                error = retired.task.exception()
                if error is not None:
                    logger.error("VU exited with error", vu_id=retired.runner.vu.id, error=str(error))

        logger.info("Drain complete", vus=len(self._retired), forced=self.forced_stops)
        return self.forced_stops
