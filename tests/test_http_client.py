"""Tests for the outbound HTTP request/response mapper.

Tests cover:
- Request headers and body
- JSON and text response mapping
- Malformed JSON responses
- Transport failures
- Body serialization
"""

from __future__ import annotations

import json

import httpx
import pytest

from tests.factories import make_requester
from zeebe_http.core.errors import (
    BodySerializationError,
    RequestFailedError,
    ResponseDecodeError,
)
from zeebe_http.services.http_client import (
    HttpRequester,
    HttpResult,
    has_content_type,
    serialize_body,
)


class TestSerializeBody:
    """Tests for serialize_body()."""

    def test_none_means_no_body(self):
        """Test that an absent body is not serialized."""
        assert serialize_body(None) is None

    def test_object_body(self):
        """Test serializing an object."""
        assert json.loads(serialize_body({"x": 1, "tags": ["a"]})) == {"x": 1, "tags": ["a"]}

    def test_string_body_is_json_encoded(self):
        """Test that a string body is sent as a JSON string."""
        assert serialize_body("hello") == b'"hello"'

    def test_nan_is_rejected(self):
        """Test that NaN cannot be serialized."""
        with pytest.raises(BodySerializationError, match="Failed to serialize parameter 'body'"):
            serialize_body({"value": float("nan")})

    def test_unsupported_type_is_rejected(self):
        """Test that non-JSON types cannot be serialized."""
        with pytest.raises(BodySerializationError):
            serialize_body({"value": object()})  # type: ignore[dict-item]


class TestHasContentType:
    """Tests for has_content_type()."""

    def test_partial_match(self):
        """Test that parameters after the media type still match."""
        response = httpx.Response(200, headers={"Content-Type": "application/json; charset=utf-8"})

        assert has_content_type(response, "application/json")

    def test_problem_json_does_not_match(self):
        """Test that a different media type ending in +json is not JSON."""
        response = httpx.Response(400, headers={"Content-Type": "application/problem+json"})

        assert not has_content_type(response, "application/json")

    def test_missing_header(self):
        """Test a response without Content-Type."""
        assert not has_content_type(httpx.Response(200), "application/json")


class TestHttpRequester:
    """Tests for HttpRequester.request()."""

    @pytest.mark.asyncio
    async def test_sends_json_content_type_without_body(self):
        """Test that Content-Type is set even when there is no body."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(204)

        requester = make_requester(handler)
        result = await requester.request("http://example/ok")

        assert seen[0].method == "GET"
        assert seen[0].headers["Content-Type"] == "application/json"
        assert seen[0].content == b""
        assert "Authorization" not in seen[0].headers
        assert result == HttpResult(status_code=204, body="")

    @pytest.mark.asyncio
    async def test_empty_json_body_maps_to_empty_string(self):
        """Test that an empty body typed as JSON is not parsed."""
        requester = make_requester(
            lambda request: httpx.Response(204, headers={"Content-Type": "application/json"})
        )

        result = await requester.request("http://example/ok", "DELETE")

        assert result == HttpResult(status_code=204, body="")

    @pytest.mark.asyncio
    async def test_sends_body_method_and_authorization(self):
        """Test that method, body and Authorization header are passed through."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"id": 7})

        requester = make_requester(handler)
        result = await requester.request(
            "http://example/items", "POST", b'{"x": 1}', authorization="Bearer t0k3n"
        )

        assert seen[0].method == "POST"
        assert json.loads(seen[0].content) == {"x": 1}
        assert seen[0].headers["Authorization"] == "Bearer t0k3n"
        assert result.status_code == 201
        assert result.body == {"id": 7}

    @pytest.mark.asyncio
    async def test_json_response_with_charset_is_parsed(self):
        """Test that a JSON content type with parameters yields a parsed value."""
        requester = make_requester(
            lambda request: httpx.Response(
                200,
                content=b'{"a":1}',
                headers={"Content-Type": "application/json; charset=utf-8"},
            )
        )

        result = await requester.request("http://example/json")

        assert result.body == {"a": 1}

    @pytest.mark.asyncio
    async def test_json_scalar_response(self):
        """Test that any JSON value is accepted, not only objects."""
        requester = make_requester(
            lambda request: httpx.Response(
                200, content=b"[1, 2]", headers={"Content-Type": "application/json"}
            )
        )

        result = await requester.request("http://example/list")

        assert result.body == [1, 2]

    @pytest.mark.asyncio
    async def test_text_response_is_returned_as_string(self):
        """Test that non-JSON responses are passed through as text."""
        requester = make_requester(
            lambda request: httpx.Response(
                200, content=b"hello", headers={"Content-Type": "text/plain"}
            )
        )

        result = await requester.request("http://example/text")

        assert result.body == "hello"

    @pytest.mark.asyncio
    async def test_json_looking_text_is_not_parsed(self):
        """Test that the content type, not the body, decides about parsing."""
        requester = make_requester(
            lambda request: httpx.Response(
                200, content=b'{"a": 1}', headers={"Content-Type": "text/html"}
            )
        )

        result = await requester.request("http://example/html")

        assert result.body == '{"a": 1}'

    @pytest.mark.asyncio
    async def test_error_status_is_not_an_error(self):
        """Test that 5xx responses are returned, not raised."""
        requester = make_requester(
            lambda request: httpx.Response(503, content=b"unavailable")
        )

        result = await requester.request("http://example/down")

        assert result == HttpResult(status_code=503, body="unavailable")

    @pytest.mark.asyncio
    async def test_malformed_json_raises_decode_error(self):
        """Test that a malformed JSON body keeps status code and raw body."""
        requester = make_requester(
            lambda request: httpx.Response(
                502, content=b"<html>bad gateway</html>", headers={"Content-Type": "application/json"}
            )
        )

        with pytest.raises(ResponseDecodeError) as exc_info:
            await requester.request("http://example/broken")

        assert exc_info.value.status_code == 502
        assert exc_info.value.raw_body == b"<html>bad gateway</html>"
        assert "Failed to parse response body as JSON" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_connect_error_raises_request_failed(self):
        """Test that transport errors are wrapped with the URL."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        requester = make_requester(handler)

        with pytest.raises(RequestFailedError) as exc_info:
            await requester.request("http://unreachable.invalid/")

        assert "http://unreachable.invalid/" in exc_info.value.message
        assert "Connection refused" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_timeout_raises_request_failed(self):
        """Test that timeouts are transport errors."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        requester = make_requester(handler)

        with pytest.raises(RequestFailedError, match="timed out"):
            await requester.request("http://slow.example/")

    @pytest.mark.asyncio
    async def test_unsupported_scheme_raises_request_failed(self):
        """Test that a URL without a usable scheme fails like a transport error."""
        async with HttpRequester() as requester:
            with pytest.raises(RequestFailedError):
                await requester.request("ftp://example/file")

    @pytest.mark.asyncio
    async def test_requires_context_without_client(self):
        """Test that an owned client only exists inside the context."""
        requester = HttpRequester()

        with pytest.raises(RuntimeError, match="async context manager"):
            await requester.request("http://example/ok")

    @pytest.mark.asyncio
    async def test_context_closes_owned_client_only(self):
        """Test that an injected client is left open on exit."""
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))

        async with HttpRequester(client):
            pass

        assert not client.is_closed
        await client.aclose()
