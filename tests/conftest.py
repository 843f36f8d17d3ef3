"""Pytest configuration and shared fixtures."""

import json
import os
from typing import Callable, List, Optional

import httpx
import pytest
import pytest_asyncio

# Keep tests independent of a developer's .env / environment
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_FORMAT", "console")

from vuload.config import EngineConfig
from vuload.models import Scenario, Stage, VirtualUser
from vuload.services.client import LoadTestClient
from vuload.services.metrics import MetricsAggregator
from vuload.services.requests import RequestSpecBuilder

BASE_URL = "http://target.test"


class MessageTarget:
    """In-process stand-in for the /message service.

    Records every request and answers POST with ``post_status`` and
    ``post_body`` and GET with ``get_status``. ``error`` makes every
    request fail at the transport level instead.
    """

    def __init__(
        self,
        post_status: int = 202,
        post_body=None,
        get_status: int = 200,
        error: Optional[Exception] = None,
    ):
        self.post_status = post_status
        self.post_body = {"timestamp": 1700000000000} if post_body is None else post_body
        self.get_status = get_status
        self.error = error
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if request.method == "POST":
            if isinstance(self.post_body, (bytes, str)):
                return httpx.Response(self.post_status, content=self.post_body)
            return httpx.Response(self.post_status, json=self.post_body)
        return httpx.Response(self.get_status, json={"messages": ["Hello, World!"]})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def bodies(self, method: str) -> list:
        return [json.loads(r.content) for r in self.requests if r.method == method and r.content]


@pytest.fixture
def target() -> MessageTarget:
    """Target answering 202 with a timestamp and 200."""
    return MessageTarget()


@pytest.fixture
def make_client() -> Callable[[MessageTarget], LoadTestClient]:
    """Factory for clients wired to a mocked target."""

    def _make(target: MessageTarget) -> LoadTestClient:
        return LoadTestClient(timeout_seconds=5, max_connections=50, transport=target.transport)

    return _make


@pytest_asyncio.fixture
async def client(target, make_client):
    """Started client talking to the default target."""
    client = make_client(target)
    await client.start()
    yield client
    await client.close()


@pytest.fixture
def vu() -> VirtualUser:
    return VirtualUser(id=1, user_id="user-1", session_id="session-1")


@pytest.fixture
def metrics() -> MetricsAggregator:
    return MetricsAggregator()


@pytest.fixture
def builder() -> RequestSpecBuilder:
    return RequestSpecBuilder(base_url=BASE_URL)


@pytest.fixture
def fast_config() -> EngineConfig:
    """Engine config with a short control tick for timed tests."""
    return EngineConfig(control_interval_seconds=0.05, request_timeout_seconds=5, max_connections=200)


@pytest.fixture
def k6_scenario() -> Scenario:
    """The reference profile: 10 VUs over 2s, jump to 100, hold 28s."""
    return Scenario(
        stages=[
            Stage(target=10, duration="2s"),
            Stage(target=100, duration="0"),
            Stage(target=100, duration="28s"),
        ],
        start_vus=1,
        base_url=BASE_URL,
    )


@pytest.fixture
def make_target() -> Callable[..., MessageTarget]:
    """Factory for targets with custom answers."""
    return MessageTarget
