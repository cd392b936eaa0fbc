"""Environment variables exposed to placeholders.

Two sources exist, chosen at startup:
- LocalEnvironment: process variables carrying the configured prefix, so a
  URL template such as ``{{API_HOST}}/orders`` can reference
  ``ZEEBE_ENV_API_HOST`` without leaking the rest of the environment
- RemoteEnvironment: a JSON list of ``{"key": ..., "value": ...}`` objects
  fetched from ``ENV_VARS_URL``, cached for ``ENV_VARS_RELOAD_RATE``
  milliseconds and optionally authorized with a machine-to-machine token

Example:
    async with create_environment(settings) as environment:
        variables = await environment.get_variables()
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import SecretStr

from zeebe_http.core.errors import EnvironmentVariablesError

if TYPE_CHECKING:
    from zeebe_http.core.config import Settings

logger = logging.getLogger(__name__)

# Statuses after which the token is refreshed and the request sent once more
TOKEN_REJECTED_STATUSES = (401, 403)


def load_local_environment(
    prefix: str,
    remove_prefix: bool = True,
    environ: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Collect environment variables whose name starts with ``prefix``.

    Args:
        prefix: Name prefix selecting the variables.
        remove_prefix: Strip the prefix from the returned names.
        environ: Source mapping (defaults to ``os.environ``).

    Returns:
        Selected variables keyed by (optionally stripped) name.
    """
    source = os.environ if environ is None else environ
    selected: dict[str, str] = {}
    for name, value in source.items():
        if not name.startswith(prefix):
            continue
        key = name[len(prefix) :] if remove_prefix else name
        if key:
            selected[key] = value

    logger.info("Loaded %d local environment variables (prefix=%s)", len(selected), prefix)
    return selected


class EnvironmentVariables:
    """Source of the environment variables rendered into placeholders."""

    async def __aenter__(self) -> EnvironmentVariables:
        return self

    async def __aexit__(self, *args: object) -> None:
        pass

    async def get_variables(self) -> Mapping[str, str]:
        """Get the current variables.

        Raises:
            EnvironmentVariablesError: If the variables cannot be loaded.
        """
        raise NotImplementedError


class LocalEnvironment(EnvironmentVariables):
    """Fixed variables, read once from the process environment."""

    def __init__(self, variables: Mapping[str, str] | None = None) -> None:
        self._variables = dict(variables or {})

    @classmethod
    def from_prefix(cls, prefix: str, remove_prefix: bool = True) -> LocalEnvironment:
        return cls(load_local_environment(prefix, remove_prefix))

    async def get_variables(self) -> Mapping[str, str]:
        return self._variables


@dataclass(frozen=True)
class M2MCredentials:
    """Client credentials for the token endpoint.

    Attributes:
        token_url: Token endpoint accepting a JSON client credentials grant.
        client_id: OAuth2 client ID.
        client_secret: OAuth2 client secret (sensitive).
        audience: Audience of the requested token, if any.
    """

    token_url: str
    client_id: str
    client_secret: SecretStr
    audience: str | None = None


class RemoteEnvironment(EnvironmentVariables):
    """Variables fetched from a configuration endpoint and cached.

    Concurrent jobs share one cache; a reload happens at most once per
    expiry no matter how many jobs ask for the variables at the same time.
    """

    def __init__(
        self,
        url: str,
        reload_interval_ms: int = 15_000,
        credentials: M2MCredentials | None = None,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the remote source.

        Args:
            url: Endpoint returning the variables.
            reload_interval_ms: How long loaded variables are reused.
            credentials: Token endpoint credentials, if the endpoint needs a token.
            client: Client to use. When omitted, one is created on entering
                the context and closed on exit.
            clock: Monotonic time source in seconds.
        """
        self._url = url
        self._reload_interval = reload_interval_ms / 1000
        self._credentials = credentials
        self._client = client
        self._owns_client = client is None
        self._clock = clock
        self._lock = asyncio.Lock()
        self._token: str | None = None
        self._variables: dict[str, str] | None = None
        self._loaded_at = 0.0

    async def __aenter__(self) -> RemoteEnvironment:
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
            msg = "RemoteEnvironment must be used as async context manager"
            raise RuntimeError(msg)
        return self._client

    def _is_fresh(self) -> bool:
        return (
            self._variables is not None
            and self._clock() - self._loaded_at < self._reload_interval
        )

    async def get_variables(self) -> Mapping[str, str]:
        if self._is_fresh():
            return self._variables

        async with self._lock:
            # Another job may have reloaded while this one waited
            if self._is_fresh():
                return self._variables

            try:
                variables = await self._load()
            except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
                raise EnvironmentVariablesError(
                    f"Failed to load environment variables from '{self._url}': {e}"
                ) from e

            self._variables = variables
            self._loaded_at = self._clock()
            logger.info("Loaded %d remote environment variables", len(variables))
            return variables

    async def _load(self) -> dict[str, str]:
        response = await self._fetch()
        if response.status_code in TOKEN_REJECTED_STATUSES and self._credentials is not None:
            logger.info("Variables endpoint rejected the token, requesting a new one")
            self._token = None
            response = await self._fetch()

        if response.status_code != 200:
            msg = f"unexpected HTTP status {response.status_code}"
            raise ValueError(msg)

        if not response.text.strip():
            return {}
        return _parse_variables(response.json())

    async def _fetch(self) -> httpx.Response:
        headers = {"Accept": "application/json"}
        if self._credentials is not None:
            if self._token is None:
                self._token = await self._request_token(self._credentials)
            headers["Authorization"] = self._token
        return await self._get_client().get(self._url, headers=headers)

    async def _request_token(self, credentials: M2MCredentials) -> str:
        """Request a token with the client credentials grant.

        Returns:
            Authorization header value, ``"<token_type> <access_token>"``.
        """
        response = await self._get_client().post(
            credentials.token_url,
            json={
                "client_id": credentials.client_id,
                "client_secret": credentials.client_secret.get_secret_value(),
                "audience": credentials.audience,
                "grant_type": "client_credentials",
            },
            headers={"Accept": "application/json"},
        )
        response.raise_for_status()

        token = response.json()
        try:
            return f"{token['token_type']} {token['access_token']}"
        except (KeyError, TypeError) as e:
            msg = f"token response is missing {e}"
            raise ValueError(msg) from e


def _parse_variables(document: Any) -> dict[str, str]:
    """Convert ``[{"key": ..., "value": ...}, ...]`` into a mapping."""
    if not isinstance(document, list):
        msg = "expected a JSON list of {key, value} objects"
        raise ValueError(msg)

    variables: dict[str, str] = {}
    for entry in document:
        if not isinstance(entry, Mapping) or not isinstance(entry.get("key"), str):
            msg = f"invalid variable entry {entry!r}"
            raise ValueError(msg)
        value = entry.get("value")
        variables[entry["key"]] = "" if value is None else str(value)
    return variables


def create_environment(settings: Settings) -> EnvironmentVariables:
    """Pick the variables source: remote when ENV_VARS_URL is set, local otherwise."""
    if not settings.env_vars_url:
        return LocalEnvironment.from_prefix(
            settings.local_env_vars_prefix,
            settings.local_env_vars_remove_prefix,
        )

    credentials = None
    if settings.env_vars_m2m_base_url:
        credentials = M2MCredentials(
            token_url=settings.env_vars_m2m_base_url,
            client_id=settings.env_vars_m2m_client_id or "",
            client_secret=settings.env_vars_m2m_client_secret or SecretStr(""),
            audience=settings.env_vars_m2m_audience or None,
        )

    logger.info("Using remote environment variables from %s", settings.env_vars_url)
    return RemoteEnvironment(
        settings.env_vars_url,
        reload_interval_ms=settings.env_vars_reload_rate,
        credentials=credentials,
    )
