"""Async HTTP client for the load target."""

import time
from typing import Optional

import httpx
import structlog

from ..models.errors import MalformedResponse, TransportError
from ..models.results import HttpResponse, RequestDescriptor

logger = structlog.get_logger(__name__)


class LoadTestClient:
    """Shared async HTTP client used by every VU runner."""

    def __init__(
        self,
        timeout_seconds: float = 60.0,
        max_connections: int = 200,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = httpx.Timeout(timeout_seconds)
        self.max_connections = max_connections
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "LoadTestClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def start(self) -> None:
        """Initialize the HTTP connection pool."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                limits=httpx.Limits(
                    max_connections=self.max_connections,
                    max_keepalive_connections=self.max_connections,
                ),
                transport=self._transport,
            )

    async def close(self) -> None:
        """Close the HTTP connection pool."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def send(self, request: RequestDescriptor) -> HttpResponse:
        """Issue a request and return the response with its latency.

        Any HTTP status is a response, not an error.

        Raises:
            TransportError: On connection, protocol or timeout failures.
            MalformedResponse: If the body cannot be decoded.
        """
        if self._client is None:
            await self.start()

        start_time = time.perf_counter()
        try:
            response = await self._client.request(
                request.method,
                request.url,
                params=request.params,
                json=request.json_body,
            )
        except httpx.TimeoutException as e:
            latency_ms = (time.perf_counter() - start_time) * 1000
            logger.debug("Request timed out", tag=request.tag, latency_ms=round(latency_ms, 2))
            raise TransportError(f"Request timed out: {request.tag}", timeout=True) from e
        except httpx.DecodingError as e:
            logger.debug("Response could not be decoded", tag=request.tag, error=str(e))
            raise MalformedResponse(f"Response body could not be decoded: {e}") from e
        except httpx.HTTPError as e:
            logger.debug("Request failed", tag=request.tag, error=str(e))
            raise TransportError(f"{type(e).__name__}: {e}") from e

        latency_ms = (time.perf_counter() - start_time) * 1000
        return HttpResponse(
            status_code=response.status_code,
            body=response.content,
            latency_ms=latency_ms,
            tag=request.tag,
        )
