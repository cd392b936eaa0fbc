"""HTTP worker service entry point.

This module provides the main Worker class that:
- Activates jobs of type ``http`` from the broker
- Runs up to ``max_jobs`` handlers concurrently
- Handles graceful shutdown via SIGINT/SIGTERM: stops activating new jobs,
  waits for in-flight jobs to finish, then exits with status 0

Usage:
    BROKER=zeebe:26500 python -m zeebe_http.worker
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, NoReturn

from zeebe_http.broker.base import BrokerClient, Job
from zeebe_http.core.config import DEFAULT_MAX_JOBS, DEFAULT_WORKER_NAME, JOB_TYPE
from zeebe_http.core.errors import (
    BrokerConnectionError,
    BrokerError,
    EnvironmentVariablesError,
)
from zeebe_http.core.logging import setup_logging
from zeebe_http.core.settings import get_settings

if TYPE_CHECKING:
    from zeebe_http.core.config import Settings

logger = logging.getLogger(__name__)

# Type alias for job handlers: returns True when the job was completed
JobHandler = Callable[[BrokerClient, Job], Awaitable[bool]]


@dataclass
class WorkerConfig:
    """Configuration for the worker loop.

    Attributes:
        job_type: Job type to activate.
        worker_name: Worker name reported to the broker.
        max_jobs: Maximum number of jobs handled concurrently.
        poll_interval: Seconds to wait before polling again when idle.
    """

    job_type: str = JOB_TYPE
    worker_name: str = DEFAULT_WORKER_NAME
    max_jobs: int = DEFAULT_MAX_JOBS
    poll_interval: float = 1.0

    @classmethod
    def from_settings(cls, settings: Settings) -> WorkerConfig:
        """Build a WorkerConfig from loaded settings."""
        return cls(
            worker_name=settings.worker_name,
            max_jobs=settings.worker_max_jobs,
            poll_interval=settings.worker_poll_interval,
        )


class Worker:
    """Activates jobs from the broker and dispatches them to a handler.

    Each activated job runs in its own task; at most ``max_jobs`` run at
    once. Setting the shutdown event stops activation, after which the
    worker waits for every in-flight job before ``start()`` returns.

    Example:
        shutdown = asyncio.Event()
        worker = Worker(WorkerConfig(), broker, handler, shutdown)
        await worker.start()
    """

    def __init__(
        self,
        config: WorkerConfig,
        broker: BrokerClient,
        handler: JobHandler,
        shutdown_event: asyncio.Event | None = None,
    ) -> None:
        """Initialize the worker.

        Args:
            config: Worker configuration settings.
            broker: Shared broker client.
            handler: Handler invoked for every activated job.
            shutdown_event: Event that requests graceful shutdown when set.
        """
        self.config = config
        self._broker = broker
        self._handler = handler
        self._shutdown_event = shutdown_event or asyncio.Event()
        self._in_flight: set[asyncio.Task[None]] = set()
        self._running = False
        self._started_at: datetime | None = None
        self._jobs_processed = 0
        self._jobs_failed = 0

    @property
    def is_ready(self) -> bool:
        """Whether the worker is activating jobs."""
        return self._running and not self._shutdown_event.is_set()

    @property
    def in_flight_count(self) -> int:
        """Number of jobs currently being handled."""
        return len(self._in_flight)

    async def start(self) -> None:
        """Run the worker until shutdown is requested and in-flight jobs have drained."""
        self._started_at = datetime.now(UTC)
        self._running = True
        logger.info(
            "Worker starting: worker_name=%s, job_type=%s, max_jobs=%d",
            self.config.worker_name,
            self.config.job_type,
            self.config.max_jobs,
        )

        try:
            await self._run_loop()
        finally:
            await self._drain()
            self._running = False
            logger.info(
                "Worker stopped: worker_name=%s, processed=%d, failed=%d, uptime=%s",
                self.config.worker_name,
                self._jobs_processed,
                self._jobs_failed,
                self._get_uptime(),
            )

    async def stop(self) -> None:
        """Request graceful shutdown of the worker."""
        logger.info("Worker shutdown requested: worker_name=%s", self.config.worker_name)
        self._shutdown_event.set()

    async def _run_loop(self) -> None:
        """Main loop: activate jobs while there is capacity."""
        while not self._shutdown_event.is_set():
            if len(self._in_flight) >= self.config.max_jobs:
                await asyncio.wait(self._in_flight, return_when=asyncio.FIRST_COMPLETED)
                continue

            try:
                activated = await self._activate_and_dispatch()
            except BrokerError as e:
                logger.error("Job activation failed: %s", e.message)
                activated = 0
            except Exception as e:
                # Log error but continue running
                logger.exception("Error in worker loop: %s", e)
                activated = 0

            if activated == 0:
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(
                        self._shutdown_event.wait(),
                        timeout=self.config.poll_interval,
                    )

    async def _activate_and_dispatch(self) -> int:
        """Activate as many jobs as there is capacity for and start handling them.

        Returns:
            Number of jobs activated.
        """
        capacity = self.config.max_jobs - len(self._in_flight)
        jobs = await self._broker.activate_jobs(
            self.config.job_type,
            self.config.worker_name,
            capacity,
        )

        for job in jobs:
            task = asyncio.create_task(self._handle(job))
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)

        if jobs:
            logger.debug("Activated %d jobs", len(jobs))
        return len(jobs)

    async def _handle(self, job: Job) -> None:
        """Run the handler for one job and update counters."""
        try:
            completed = await self._handler(self._broker, job)
        except Exception as e:
            logger.exception("Job handler raised: job_key=%s, error=%s", job.key, e)
            completed = False

        if completed:
            self._jobs_processed += 1
        else:
            self._jobs_failed += 1

    async def _drain(self) -> None:
        """Wait for every in-flight job to finish."""
        if not self._in_flight:
            return
        logger.info("Waiting for %d in-flight jobs...", len(self._in_flight))
        await asyncio.gather(*self._in_flight, return_exceptions=True)
        logger.info("All in-flight jobs finished")

    def _get_uptime(self) -> str:
        """Calculate worker uptime as a human-readable string."""
        if self._started_at is None:
            return "0s"
        delta = datetime.now(UTC) - self._started_at
        hours, remainder = divmod(int(delta.total_seconds()), 3600)
        minutes, seconds = divmod(remainder, 60)
        if hours > 0:
            return f"{hours}h {minutes}m {seconds}s"
        elif minutes > 0:
            return f"{minutes}m {seconds}s"
        else:
            return f"{seconds}s"


def _install_signal_handlers(shutdown_event: asyncio.Event) -> None:
    """Set ``shutdown_event`` on SIGINT or SIGTERM."""
    loop = asyncio.get_running_loop()

    def _handle_shutdown(sig: signal.Signals) -> None:
        logger.info("Shutdown signal received (signal=%s)", sig.name)
        shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _handle_shutdown, sig)


async def _async_main(settings: Settings, shutdown_event: asyncio.Event) -> None:
    """Connect to the broker and run the worker until shutdown.

    Environment variables are loaded once before connecting, so an
    unreachable variables endpoint stops the worker at startup.

    Args:
        settings: Loaded worker settings.
        shutdown_event: Event to signal shutdown request.
    """
    # Imported here so tests of the run loop do not need the broker stack
    from zeebe_http.broker.zeebe import ZeebeBrokerClient
    from zeebe_http.services.environment import create_environment
    from zeebe_http.services.http_client import HttpRequester
    from zeebe_http.services.placeholders import PlaceholderProcessor
    from zeebe_http.worker.handlers.http import HttpJobHandler
    from zeebe_http.worker.probe import ProbeServer

    async with create_environment(settings) as environment:
        try:
            await environment.get_variables()
        except EnvironmentVariablesError as e:
            logger.critical("%s", e.message)
            raise SystemExit(1) from e

        try:
            broker = await ZeebeBrokerClient.connect(
                settings.broker,
                timeout=settings.worker_connect_timeout,
                job_timeout_ms=settings.worker_job_timeout_ms,
                request_timeout_ms=settings.worker_request_timeout_ms,
            )
        except BrokerConnectionError as e:
            logger.critical("%s", e.message)
            raise SystemExit(1) from e

        try:
            async with HttpRequester() as requester:
                handler = HttpJobHandler(requester, PlaceholderProcessor(), environment)
                config = WorkerConfig.from_settings(settings)
                worker = Worker(config, broker, handler, shutdown_event)
                probe = (
                    ProbeServer(worker, settings.probe_host, settings.probe_port)
                    if settings.probe_enabled
                    else None
                )

                try:
                    if probe is not None:
                        await probe.start()
                    await worker.start()
                finally:
                    if probe is not None:
                        await probe.stop()
        finally:
            await broker.close()


def run() -> NoReturn:
    """Run the worker process.

    This is the main entry point for the worker. It:
    - Sets up logging
    - Loads configuration from environment variables
    - Registers signal handlers for graceful shutdown
    - Runs the async worker loop
    """
    setup_logging(os.environ.get("LOG_LEVEL", "INFO"))
    settings = get_settings()
    setup_logging(settings.log_level)

    logger.info("HTTP worker starting...")

    async def _run_with_event() -> None:
        shutdown_event = asyncio.Event()
        _install_signal_handlers(shutdown_event)
        await _async_main(settings, shutdown_event)

    try:
        asyncio.run(_run_with_event())
    except KeyboardInterrupt:
        logger.info("Worker interrupted")
    except Exception as e:
        logger.exception("Worker failed: %s", e)
        sys.exit(1)

    logger.info("HTTP worker shutdown complete")
    sys.exit(0)


if __name__ == "__main__":
    run()
