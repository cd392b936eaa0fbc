"""Broker-facing data model and client protocol.

The broker owns job distribution, leasing and redelivery. The worker only
reads activated jobs and asks the broker to complete or fail them, so the
whole broker surface it depends on is the three-method BrokerClient
protocol below. The production binding lives in zeebe_http.broker.zeebe;
tests substitute an in-memory implementation.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class Job:
    """A unit of work activated from the broker.

    The worker never creates or destroys jobs; it reads these fields and
    requests a state transition through the broker client.

    Attributes:
        key: Unique job key assigned by the broker.
        type: Job type the job was activated for.
        retries: Remaining retries as tracked by the broker.
        custom_headers: Static headers from the task definition. Normally a
            mapping; a JSON document string is accepted as well.
        variables: Job payload. Normally a mapping; a JSON document string is
            accepted as well.
        process_instance_key: Key of the owning process instance, if known.
        element_id: BPMN element the job belongs to, if known.
        worker: Worker name the job was activated by.
    """

    key: int
    type: str
    retries: int
    custom_headers: Mapping[str, Any] | str = field(default_factory=dict)
    variables: Mapping[str, Any] | str = field(default_factory=dict)
    process_instance_key: int | None = None
    element_id: str | None = None
    worker: str | None = None


@runtime_checkable
class BrokerClient(Protocol):
    """Commands the worker issues against the broker.

    Implementations must be safe to call concurrently from many job
    handlers sharing one connection.
    """

    async def activate_jobs(
        self,
        job_type: str,
        worker_name: str,
        max_jobs: int,
    ) -> list[Job]:
        """Activate up to ``max_jobs`` jobs of ``job_type``.

        Raises:
            BrokerError: If the activation request fails.
        """
        ...

    async def complete_job(self, job_key: int, variables: Mapping[str, Any]) -> None:
        """Complete a job, merging ``variables`` into the process.

        Raises:
            BrokerError: If the command fails.
        """
        ...

    async def fail_job(self, job_key: int, retries: int, message: str) -> None:
        """Fail a job, leaving ``retries`` attempts and recording ``message``.

        Raises:
            BrokerError: If the command fails.
        """
        ...

    async def close(self) -> None:
        """Release the connection."""
        ...
