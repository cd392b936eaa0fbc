"""Outbound HTTP requests for HTTP jobs.

This module maps one job request onto one HTTP call:
- Serializes the request body as JSON
- Sends the request with ``Content-Type: application/json``
- Reads the whole response body
- Parses the body as JSON when the response declares a JSON content type,
  otherwise returns it as text

The underlying httpx client keeps its default configuration (timeouts,
redirects, no retries) and is shared by all concurrent jobs.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

import httpx

from zeebe_http.core.errors import (
    BodySerializationError,
    RequestFailedError,
    ResponseDecodeError,
)
from zeebe_http.services.parameters import JsonValue

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"
DEFAULT_METHOD = "GET"


@dataclass(frozen=True)
class HttpResult:
    """Outcome of a completed HTTP call.

    Attributes:
        status_code: Response status code.
        body: Parsed JSON value for JSON responses, the decoded text otherwise.
    """

    status_code: int
    body: JsonValue


def serialize_body(body: JsonValue) -> bytes | None:
    """Serialize a request body as JSON.

    Args:
        body: Any JSON value, or None for no body.

    Returns:
        UTF-8 encoded JSON document, or None if ``body`` is None.

    Raises:
        BodySerializationError: If the value is not representable as JSON.
    """
    if body is None:
        return None
    try:
        return json.dumps(body, allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise BodySerializationError(f"Failed to serialize parameter 'body' as JSON: {e}") from e


def has_content_type(response: httpx.Response, content_type: str) -> bool:
    """Check whether any Content-Type header of ``response`` contains ``content_type``."""
    wanted = content_type.lower()
    return any(wanted in value.lower() for value in response.headers.get_list("content-type"))


class HttpRequester:
    """Performs job HTTP requests over a shared httpx client.

    Example usage:
        async with HttpRequester() as requester:
            result = await requester.request("http://example/ok", "POST", b'{"x": 1}')
            print(result.status_code, result.body)
    """

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        """Initialize the requester.

        Args:
            client: Client to use. When omitted, one with default settings is
                created on entering the context and closed on exit.
        """
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> HttpRequester:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get the HTTP client, raising if not in context."""
        if self._client is None:
            msg = "HttpRequester must be used as async context manager"
            raise RuntimeError(msg)
        return self._client

    async def request(
        self,
        url: str,
        method: str = DEFAULT_METHOD,
        body: bytes | None = None,
        authorization: str | None = None,
    ) -> HttpResult:
        """Send one request and map the response.

        Args:
            url: Target URL.
            method: HTTP method.
            body: Serialized JSON request body, if any.
            authorization: Value for the Authorization header, if any.

        Returns:
            HttpResult with the status code and mapped body.

        Raises:
            RequestFailedError: On transport failures (connection, timeout, DNS, invalid URL).
            ResponseDecodeError: If a JSON response body cannot be parsed.
        """
        client = self._get_client()
        headers = {"Content-Type": JSON_CONTENT_TYPE}
        if authorization:
            headers["Authorization"] = authorization

        try:
            response = await client.request(method, url, content=body, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            detail = str(e) or type(e).__name__
            raise RequestFailedError(f"Failed to send request to {url}: {detail}") from e

        logger.debug("%s %s -> %d", method, url, response.status_code)
        return HttpResult(status_code=response.status_code, body=_map_body(response))


def _map_body(response: httpx.Response) -> JsonValue:
    """Map a fully read response body to a JSON value or text."""
    raw = response.content
    # Empty bodies are never parsed, even when typed as JSON (e.g. a 204 reply)
    if not raw:
        return ""

    if has_content_type(response, JSON_CONTENT_TYPE):
        try:
            return json.loads(raw)
        except ValueError as e:
            raise ResponseDecodeError(
                f"Failed to parse response body as JSON (status {response.status_code}): {e}",
                status_code=response.status_code,
                raw_body=raw,
            ) from e

    return response.text
