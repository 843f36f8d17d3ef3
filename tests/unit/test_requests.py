"""Unit tests for the request spec builder."""

import pytest

from vuload.models import DependencyMissing, HttpResponse, MalformedResponse
from vuload.services.requests import GET_TAG, POST_TAG, RequestSpecBuilder


def post_response(body: bytes, status: int = 202) -> HttpResponse:
    return HttpResponse(status_code=status, body=body, latency_ms=1.0, tag=POST_TAG)


class TestBuildPost:
    """Tests for the POST step."""

    def test_post_descriptor(self, builder, vu):
        request = builder.build_post(vu)

        assert request.method == "POST"
        assert request.url == "http://target.test/message"
        assert request.tag == POST_TAG
        assert request.json_body == {
            "userId": "user-1",
            "sessionId": "session-1",
            "message": "Hello, World!",
        }

    def test_custom_message(self, vu):
        builder = RequestSpecBuilder(base_url="http://target.test/", message="ping")
        request = builder.build_post(vu)

        assert request.url == "http://target.test/message"
        assert request.json_body["message"] == "ping"

    def test_does_not_mutate_vu(self, builder, vu):
        before = (vu.id, vu.user_id, vu.session_id)
        builder.build_post(vu)
        builder.build_get(vu, post_response(b'{"timestamp": 1}'))
        assert (vu.id, vu.user_id, vu.session_id) == before


class TestBuildGet:
    """Tests for the GET step and its timestamp dependency."""

    def test_get_with_timestamp(self, builder, vu):
        request = builder.build_get(vu, post_response(b'{"timestamp": 1700000000000}'))

        assert request.method == "GET"
        assert request.tag == GET_TAG
        assert request.params == {
            "userId": "user-1",
            "sessionId": "session-1",
            "timestamp": "1700000000000",
        }

    def test_get_with_string_timestamp(self, builder, vu):
        request = builder.build_get(vu, post_response(b'{"timestamp": "T"}'))
        assert request.params["timestamp"] == "T"

    def test_missing_timestamp_raises_dependency_missing(self, builder, vu):
        with pytest.raises(DependencyMissing) as exc_info:
            builder.build_get(vu, post_response(b'{"status": "ok"}'))
        assert exc_info.value.dependency == "timestamp"

    @pytest.mark.parametrize("body", [b'{"timestamp": null}', b'{"timestamp": true}', b'{"timestamp": [1]}'])
    def test_unusable_timestamp_raises_dependency_missing(self, builder, vu, body):
        with pytest.raises(DependencyMissing):
            builder.build_get(vu, post_response(body))

    def test_no_post_response_raises_dependency_missing(self, builder, vu):
        with pytest.raises(DependencyMissing):
            builder.build_get(vu, None)

    @pytest.mark.parametrize("body", [b"", b"not json", b"[1, 2]"])
    def test_unparseable_body_raises_malformed_response(self, builder, vu, body):
        with pytest.raises(MalformedResponse):
            builder.build_get(vu, post_response(body))

    def test_without_timestamp_option(self, vu):
        builder = RequestSpecBuilder(base_url="http://target.test", include_timestamp=False)

        request = builder.build_get(vu, None)

        assert request.params == {"userId": "user-1", "sessionId": "session-1"}

    def test_from_scenario(self, k6_scenario):
        builder = RequestSpecBuilder.from_scenario(k6_scenario)

        assert builder.base_url == k6_scenario.base_url
        assert builder.include_timestamp is True
