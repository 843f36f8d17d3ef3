"""Value types exchanged between the builder, client, checks and runner."""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .errors import ErrorType, MalformedResponse


@dataclass(frozen=True)
class VirtualUser:
    """Identity of one simulated client."""

    id: int
    user_id: str
    session_id: str
    spawned_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class RequestDescriptor:
    """A request to issue against the target."""

    method: str
    url: str
    tag: str
    params: Optional[Dict[str, str]] = None
    json_body: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class HttpResponse:
    """Response received from the target."""

    status_code: int
    body: bytes
    latency_ms: float
    tag: str = ""

    def json(self) -> Any:
        """Decode the body as JSON.

        Raises:
            MalformedResponse: If the body is empty or not valid JSON.
        """
        if not self.body:
            raise MalformedResponse("Response body is empty")
        try:
            return json.loads(self.body)
        except (ValueError, UnicodeDecodeError) as e:
            raise MalformedResponse(f"Response body is not valid JSON: {e}") from e


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one named check."""

    name: str
    passed: bool
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    vu_id: Optional[int] = None
    tag: Optional[str] = None
    error_type: Optional[ErrorType] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "passed": self.passed,
            "timestamp": self.timestamp.isoformat(),
            "vu_id": self.vu_id,
            "tag": self.tag,
            "error_type": self.error_type.value if self.error_type else None,
        }
