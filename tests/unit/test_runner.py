"""Unit tests for the VU runner."""

import asyncio

import httpx
import pytest

from vuload.models import ErrorType
from vuload.services.client import LoadTestClient
from vuload.services.requests import POST_TAG, RequestSpecBuilder
from vuload.services.runner import VURunner, VUState


@pytest.fixture
def make_runner(vu, builder, metrics):
    """Factory for runners against a given client."""

    def _make(client, think_time: float = 0.01, **kwargs) -> VURunner:
        return VURunner(vu=vu, client=client, builder=builder, metrics=metrics, think_time=think_time, **kwargs)

    return _make


async def wait_until(predicate, timeout: float = 2.0) -> None:
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout=timeout)


class TestRunIteration:
    """Tests for a single iteration."""

    @pytest.mark.asyncio
    async def test_successful_iteration_two_passed_checks(self, client, target, make_runner, metrics):
        target.post_body = {"timestamp": "T"}
        runner = make_runner(client)

        results = await runner.run_iteration()

        assert [(r.name, r.passed) for r in results] == [
            ("POST: /message: 202", True),
            ("GET: /message: 200", True),
        ]
        snapshot = metrics.snapshot()
        assert snapshot.checks_passed == 2
        assert snapshot.checks_failed == 0
        assert snapshot.requests_total == 2
        assert snapshot.iterations == 1

    @pytest.mark.asyncio
    async def test_post_precedes_get_with_timestamp(self, client, target, make_runner):
        runner = make_runner(client)

        await runner.run_iteration()

        assert [r.method for r in target.requests] == ["POST", "GET"]
        assert target.requests[1].url.params["timestamp"] == "1700000000000"
        assert target.requests[1].url.params["userId"] == "user-1"
        assert target.bodies("POST")[0]["sessionId"] == "session-1"

    @pytest.mark.asyncio
    async def test_missing_timestamp_skips_get(self, client, target, make_runner, metrics):
        target.post_body = {"ok": True}
        runner = make_runner(client)

        results = await runner.run_iteration()

        assert [r.method for r in target.requests] == ["POST"]
        failed = [r for r in results if not r.passed]
        assert len(failed) == 1
        assert failed[0].name == "GET: /message: 200"
        assert failed[0].error_type == ErrorType.DEPENDENCY_MISSING
        assert metrics.snapshot().errors == {"dependency_missing": 1}
        assert metrics.snapshot().requests_total == 1

    @pytest.mark.asyncio
    async def test_malformed_post_body_skips_get(self, client, target, make_runner):
        target.post_body = b"<html>oops</html>"
        runner = make_runner(client)

        results = await runner.run_iteration()

        assert results[1].passed is False
        assert results[1].error_type == ErrorType.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_failed_status_is_failed_check(self, client, target, make_runner):
        target.post_status = 500
        target.get_status = 404
        runner = make_runner(client)

        results = await runner.run_iteration()

        assert [r.passed for r in results] == [False, False]
        assert all(r.error_type is None for r in results)

    @pytest.mark.asyncio
    async def test_transport_error_recorded_as_failed_checks(self, make_client, make_target, make_runner, metrics):
        client = make_client(make_target(error=httpx.ConnectError("Connection refused")))
        runner = make_runner(client)

        async with client:
            results = await runner.run_iteration()

        assert [(r.name, r.error_type) for r in results] == [
            ("POST: /message: 202", ErrorType.TRANSPORT),
            ("GET: /message: 200", ErrorType.DEPENDENCY_MISSING),
        ]
        snapshot = metrics.snapshot()
        assert snapshot.requests_total == 1
        assert snapshot.errors == {"transport_error": 1, "dependency_missing": 1}

    @pytest.mark.asyncio
    async def test_without_timestamp_get_always_sent(self, make_client, make_target, vu, metrics):
        target = make_target(error=None, post_body={})
        client = make_client(target)
        builder = RequestSpecBuilder(base_url="http://target.test", include_timestamp=False)
        runner = VURunner(vu=vu, client=client, builder=builder, metrics=metrics, think_time=0.01)

        async with client:
            results = await runner.run_iteration()

        assert [r.passed for r in results] == [True, True]
        assert "timestamp" not in target.requests[1].url.params

    @pytest.mark.asyncio
    async def test_missing_dependency_without_checks_still_counted(self, client, target, make_runner, metrics):
        target.post_body = {}
        runner = make_runner(client, checks={POST_TAG: []})

        results = await runner.run_iteration()

        assert results == []
        assert metrics.snapshot().errors == {"dependency_missing": 1}


class TestRunLoop:
    """Tests for the run loop and stop signal."""

    @pytest.mark.asyncio
    async def test_state_transitions(self, client, make_runner):
        runner = make_runner(client)
        assert runner.state == VUState.IDLE

        task = asyncio.create_task(runner.run())
        await wait_until(lambda: runner.iterations >= 1)
        assert runner.state == VUState.RUNNING

        runner.stop()
        assert runner.state == VUState.STOPPING
        await asyncio.wait_for(task, timeout=1)
        assert runner.state == VUState.STOPPED

    @pytest.mark.asyncio
    async def test_keeps_iterating_after_missing_dependency(self, client, target, make_runner, metrics):
        target.post_body = {}
        runner = make_runner(client)

        task = asyncio.create_task(runner.run())
        await wait_until(lambda: runner.iterations >= 3)
        runner.stop()
        await asyncio.wait_for(task, timeout=1)

        snapshot = metrics.snapshot()
        assert snapshot.errors["dependency_missing"] == runner.iterations
        assert snapshot.checks["POST: /message: 202"].passed == runner.iterations

    @pytest.mark.asyncio
    async def test_keeps_iterating_after_transport_error(self, make_client, make_target, make_runner):
        client = make_client(make_target(error=httpx.ConnectError("Connection refused")))
        runner = make_runner(client)

        async with client:
            task = asyncio.create_task(runner.run())
            await wait_until(lambda: runner.iterations >= 3)
            runner.stop()
            await asyncio.wait_for(task, timeout=1)

        assert runner.state == VUState.STOPPED

    @pytest.mark.asyncio
    async def test_stop_interrupts_think_time(self, client, make_runner):
        runner = make_runner(client, think_time=30)

        task = asyncio.create_task(runner.run())
        await wait_until(lambda: runner.iterations == 1)
        runner.stop()

        await asyncio.wait_for(task, timeout=1)
        assert runner.iterations == 1

    @pytest.mark.asyncio
    async def test_stop_before_start(self, client, make_runner, target):
        runner = make_runner(client)
        runner.stop()

        await runner.run()

        assert runner.iterations == 0
        assert target.requests == []
        assert runner.state == VUState.STOPPED

    @pytest.mark.asyncio
    async def test_stop_mid_request_completes_iteration(self, make_runner, metrics):
        release = asyncio.Event()
        in_flight = asyncio.Event()
        seen = []

        async def slow_target(request: httpx.Request) -> httpx.Response:
            seen.append(request.method)
            if request.method == "POST":
                in_flight.set()
                await release.wait()
                return httpx.Response(202, json={"timestamp": 1})
            return httpx.Response(200, json={"messages": []})

        client = LoadTestClient(timeout_seconds=5, transport=httpx.MockTransport(slow_target))
        runner = make_runner(client, think_time=30)

        async with client:
            task = asyncio.create_task(runner.run())
            await asyncio.wait_for(in_flight.wait(), timeout=1)
            runner.stop()
            assert runner.state == VUState.STOPPING
            release.set()
            await asyncio.wait_for(task, timeout=1)

        assert seen == ["POST", "GET"]
        assert runner.iterations == 1
        assert metrics.snapshot().checks_passed == 2
        assert runner.state == VUState.STOPPED

    @pytest.mark.asyncio
    async def test_cannot_run_twice(self, client, make_runner):
        runner = make_runner(client)
        runner.stop()
        await runner.run()

        with pytest.raises(RuntimeError):
            await runner.run()

    @pytest.mark.asyncio
    async def test_requests_sent_matches_aggregator(self, client, make_runner, metrics):
        runner = make_runner(client)

        task = asyncio.create_task(runner.run())
        await wait_until(lambda: runner.iterations >= 2)
        runner.stop()
        await asyncio.wait_for(task, timeout=1)

        assert metrics.snapshot().requests_by_vu[runner.vu.id] == runner.requests_sent


def corrupt_post_transport() -> httpx.MockTransport:
    """POST answers with a gzip header over a body that is not gzip."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(
                202,
                headers={"Content-Encoding": "gzip"},
                stream=httpx.ByteStream(b"not-gzip-at-all"),
            )
        return httpx.Response(200, json={"messages": []})

    return httpx.MockTransport(handler)


class TestContainment:
    """Errors raised while sending never escape the runner."""

    @pytest.mark.asyncio
    async def test_undecodable_post_recorded_as_failed_checks(self, make_runner, metrics):
        client = LoadTestClient(transport=corrupt_post_transport())
        runner = make_runner(client)

        async with client:
            results = await runner.run_iteration()

        assert [(r.name, r.error_type) for r in results] == [
            ("POST: /message: 202", ErrorType.MALFORMED_RESPONSE),
            ("GET: /message: 200", ErrorType.DEPENDENCY_MISSING),
        ]
        snapshot = metrics.snapshot()
        assert snapshot.requests_total == 1
        assert snapshot.checks_failed == 2
        assert snapshot.errors == {"malformed_response": 1, "dependency_missing": 1}

    @pytest.mark.asyncio
    async def test_keeps_iterating_after_undecodable_response(self, make_runner, metrics):
        client = LoadTestClient(transport=corrupt_post_transport())
        runner = make_runner(client)

        async with client:
            task = asyncio.create_task(runner.run())
            await wait_until(lambda: runner.iterations >= 3)
            runner.stop()
            await asyncio.wait_for(task, timeout=1)

        assert task.exception() is None
        assert runner.state == VUState.STOPPED
        snapshot = metrics.snapshot()
        assert snapshot.errors["malformed_response"] == runner.iterations
        assert snapshot.requests_by_vu[runner.vu.id] == runner.requests_sent

    @pytest.mark.asyncio
    async def test_cancel_mid_request_keeps_counts_aligned(self, make_runner, metrics):
        in_flight = asyncio.Event()

        async def hanging_target(request: httpx.Request) -> httpx.Response:
            in_flight.set()
            await asyncio.sleep(3600)
            return httpx.Response(202, json={"timestamp": 1})

        client = LoadTestClient(transport=httpx.MockTransport(hanging_target))
        runner = make_runner(client)

        async with client:
            task = asyncio.create_task(runner.run())
            await asyncio.wait_for(in_flight.wait(), timeout=1)
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        assert runner.state == VUState.STOPPED
        assert runner.requests_sent == 0
        assert metrics.snapshot().requests_by_vu.get(runner.vu.id, 0) == runner.requests_sent
