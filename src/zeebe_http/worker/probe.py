"""Health and readiness probe for container orchestration.

Serves two endpoints next to the worker, inside the same event loop:
- GET /healthz: the process is alive (always 200)
- GET /readyz: the worker is polling for jobs (200), or not yet / no
  longer, e.g. while draining on shutdown (503)

A probe that cannot bind its port is logged and skipped; the worker keeps
handling jobs without it.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Iterator
from typing import Protocol

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class Readiness(Protocol):
    """Anything exposing an ``is_ready`` flag, typically the Worker."""

    @property
    def is_ready(self) -> bool: ...


def create_probe_app(target: Readiness) -> FastAPI:
    """Create the probe application.

    Args:
        target: Object whose ``is_ready`` flag drives /readyz.

    Returns:
        FastAPI application with /healthz and /readyz.
    """
    app = FastAPI(title="HTTP worker probe", docs_url=None, redoc_url=None, openapi_url=None)

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "healthy"}

    @app.get("/readyz")
    async def readyz() -> JSONResponse:
        if target.is_ready:
            return JSONResponse({"status": "ready"})
        return JSONResponse({"status": "not_ready"}, status_code=503)

    return app


class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the worker process."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


class ProbeServer:
    """Runs the probe application as a background task."""

    def __init__(self, target: Readiness, host: str = "0.0.0.0", port: int = 8080) -> None:  # noqa: S104
        config = uvicorn.Config(
            create_probe_app(target),
            host=host,
            port=port,
            log_level="warning",
            lifespan="off",
        )
        self._server = _EmbeddedServer(config)
        self._task: asyncio.Task[None] | None = None
        self._address = f"{host}:{port}"

    async def start(self) -> None:
        """Start serving in the background."""
        self._task = asyncio.create_task(self._serve())
        logger.info("Probe server listening on %s", self._address)

    async def _serve(self) -> None:
        # uvicorn exits the process when it cannot bind; the worker keeps running
        try:
            await self._server.serve()
        except (OSError, SystemExit) as e:
            logger.error("Probe server on %s could not start: %s", self._address, e)

    async def stop(self) -> None:
        """Stop serving and wait for the server task to finish."""
        if self._task is None:
            return
        self._server.should_exit = True
        await self._task
        self._task = None
        logger.info("Probe server stopped")
