"""Zeebe gateway binding for the BrokerClient protocol.

Transport, job activation and command delivery are delegated to pyzeebe's
gateway adapter over a single shared gRPC channel. This module only
translates between pyzeebe's job objects and errors and the worker's own
types.

Example:
    broker = await ZeebeBrokerClient.connect("zeebe:26500", timeout=10.0)
    jobs = await broker.activate_jobs("http", "http-go", max_jobs=32)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

import grpc
from pyzeebe.errors import PyZeebeError
from pyzeebe.grpc_internals.zeebe_adapter import ZeebeAdapter

from zeebe_http.broker.base import Job
from zeebe_http.core.errors import BrokerConnectionError, BrokerError

logger = logging.getLogger(__name__)

DEFAULT_JOB_TIMEOUT_MS = 300_000
DEFAULT_REQUEST_TIMEOUT_MS = 5_000

# Failed jobs become available again immediately
RETRY_BACK_OFF_MS = 0

_BROKER_ERRORS = (PyZeebeError, grpc.aio.AioRpcError)


class ZeebeBrokerClient:
    """BrokerClient backed by a Zeebe gateway.

    One instance owns the process-wide gRPC channel and is shared by every
    job handler invocation.
    """

    def __init__(
        self,
        channel: grpc.aio.Channel,
        adapter: ZeebeAdapter | None = None,
        *,
        job_timeout_ms: int = DEFAULT_JOB_TIMEOUT_MS,
        request_timeout_ms: int = DEFAULT_REQUEST_TIMEOUT_MS,
    ) -> None:
        """Initialize the client around an open channel.

        Args:
            channel: gRPC channel to the gateway.
            adapter: Pre-built pyzeebe adapter (built from ``channel`` if omitted).
            job_timeout_ms: Lease duration requested for activated jobs.
            request_timeout_ms: Long-poll duration of one activation request.
        """
        self._channel = channel
        self._adapter = adapter if adapter is not None else ZeebeAdapter(channel)
        self._job_timeout_ms = job_timeout_ms
        self._request_timeout_ms = request_timeout_ms

    @classmethod
    async def connect(
        cls,
        address: str,
        *,
        timeout: float = 10.0,
        job_timeout_ms: int = DEFAULT_JOB_TIMEOUT_MS,
        request_timeout_ms: int = DEFAULT_REQUEST_TIMEOUT_MS,
    ) -> ZeebeBrokerClient:
        """Open a channel to ``address`` and wait until it is ready.

        Raises:
            BrokerConnectionError: If the gateway is not reachable within ``timeout``.
        """
        logger.info("Connecting to broker at %s", address)
        channel = grpc.aio.insecure_channel(address)
        try:
            await asyncio.wait_for(channel.channel_ready(), timeout=timeout)
        except TimeoutError as e:
            await channel.close()
            raise BrokerConnectionError(f"Failed to connect to {address}") from e

        logger.info("Connected to broker at %s", address)
        return cls(
            channel,
            job_timeout_ms=job_timeout_ms,
            request_timeout_ms=request_timeout_ms,
        )

    async def activate_jobs(
        self,
        job_type: str,
        worker_name: str,
        max_jobs: int,
    ) -> list[Job]:
        try:
            return [
                _to_job(raw_job)
                async for raw_job in self._adapter.activate_jobs(
                    task_type=job_type,
                    worker=worker_name,
                    timeout=self._job_timeout_ms,
                    max_jobs_to_activate=max_jobs,
                    variables_to_fetch=[],
                    request_timeout=self._request_timeout_ms,
                )
            ]
        except _BROKER_ERRORS as e:
            raise BrokerError(f"Failed to activate jobs of type '{job_type}': {e}") from e

    async def complete_job(self, job_key: int, variables: Mapping[str, Any]) -> None:
        try:
            await self._adapter.complete_job(job_key=job_key, variables=dict(variables))
        except _BROKER_ERRORS as e:
            raise BrokerError(f"Failed to complete job {job_key}: {e}") from e

    async def fail_job(self, job_key: int, retries: int, message: str) -> None:
        try:
            await self._adapter.fail_job(
                job_key=job_key,
                retries=retries,
                message=message,
                retry_back_off_ms=RETRY_BACK_OFF_MS,
                variables={},
            )
        except _BROKER_ERRORS as e:
            raise BrokerError(f"Failed to fail job {job_key}: {e}") from e

    async def close(self) -> None:
        await self._channel.close()
        logger.info("Broker connection closed")


def _to_job(raw_job: Any) -> Job:
    """Convert a pyzeebe job into the worker's Job."""
    return Job(
        key=raw_job.key,
        type=raw_job.type,
        retries=raw_job.retries,
        custom_headers=raw_job.custom_headers or {},
        variables=raw_job.variables or {},
        process_instance_key=getattr(raw_job, "process_instance_key", None),
        element_id=getattr(raw_job, "element_id", None),
        worker=getattr(raw_job, "worker", None),
    )
