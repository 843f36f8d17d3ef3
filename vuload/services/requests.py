"""Request sequence construction for one iteration."""

from typing import Any, Optional

from ..models.errors import DependencyMissing, MalformedResponse
from ..models.results import HttpResponse, RequestDescriptor, VirtualUser
from ..models.scenario import Scenario

MESSAGE_PATH = "/message"
POST_TAG = "POST /message"
GET_TAG = "GET /message"


class RequestSpecBuilder:
    """Builds the POST-then-GET request pair for a virtual user.

    The builder only reads the VU identity and the prior POST response;
    it holds no per-VU state and never mutates the VU.
    """

    def __init__(self, base_url: str, message: str = "Hello, World!", include_timestamp: bool = True):
        self.base_url = base_url.rstrip("/")
        self.message = message
        self.include_timestamp = include_timestamp

    @classmethod
    def from_scenario(cls, scenario: Scenario) -> "RequestSpecBuilder":
        return cls(
            base_url=scenario.base_url,
            message=scenario.message,
            include_timestamp=scenario.include_timestamp,
        )

    @property
    def url(self) -> str:
        return f"{self.base_url}{MESSAGE_PATH}"

    def build_post(self, vu: VirtualUser) -> RequestDescriptor:
        """Build the message POST for this VU."""
        return RequestDescriptor(
            method="POST",
            url=self.url,
            tag=POST_TAG,
            json_body={
                "userId": vu.user_id,
                "sessionId": vu.session_id,
                "message": self.message,
            },
        )

    def build_get(self, vu: VirtualUser, post_response: Optional[HttpResponse] = None) -> RequestDescriptor:
        """Build the message query GET for this VU.

        Args:
            vu: Virtual user issuing the request.
            post_response: Response to this iteration's POST, or None if the
                POST produced no response.

        Raises:
            DependencyMissing: The timestamp is required but the POST produced
                no response or its body has no usable ``timestamp``.
            MalformedResponse: The timestamp is required but the POST body is
                not valid JSON.
        """
        params = {"userId": vu.user_id, "sessionId": vu.session_id}

        if self.include_timestamp:
            params["timestamp"] = self._extract_timestamp(post_response)

        return RequestDescriptor(method="GET", url=self.url, tag=GET_TAG, params=params)

    @staticmethod
    def _extract_timestamp(post_response: Optional[HttpResponse]) -> str:
        if post_response is None:
            raise DependencyMissing("timestamp", step=GET_TAG)

        body = post_response.json()
        if not isinstance(body, dict):
            raise MalformedResponse("POST response body is not a JSON object")

        timestamp: Any = body.get("timestamp")
        if timestamp is None or isinstance(timestamp, (bool, dict, list)):
            raise DependencyMissing("timestamp", step=GET_TAG)
        return str(timestamp)
