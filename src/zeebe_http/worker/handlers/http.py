"""Handler for jobs of type ``http``.

For each job the handler:
- Resolves ``url`` (required), ``method`` (default GET), ``body`` and
  ``authorization`` from the job's custom headers or variables
- Performs exactly one HTTP request
- Completes the job with ``{"statusCode": <int>, "body": <text or JSON>}``

Any failure along the way fails the job with a readable message and one
retry less than the job had.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from zeebe_http.broker.base import BrokerClient, Job
from zeebe_http.core.errors import BrokerError, ParameterError, WorkerError
from zeebe_http.services.environment import EnvironmentVariables, LocalEnvironment
from zeebe_http.services.http_client import DEFAULT_METHOD, HttpRequester, serialize_body
from zeebe_http.services.parameters import (
    PARAMETER_AUTHORIZATION,
    PARAMETER_BODY,
    PARAMETER_METHOD,
    PARAMETER_URL,
    get_parameter,
    optional_string,
    require_string,
)
from zeebe_http.services.placeholders import PLACEHOLDER_START, PlaceholderProcessor

logger = logging.getLogger(__name__)


class HttpJobHandler:
    """Performs the HTTP request described by a job and reports the outcome.

    One instance is shared by all concurrent jobs; it holds no per-job state.
    """

    def __init__(
        self,
        requester: HttpRequester,
        placeholders: PlaceholderProcessor | None = None,
        environment: EnvironmentVariables | None = None,
    ) -> None:
        """Initialize the handler.

        Args:
            requester: Shared HTTP requester.
            placeholders: Placeholder processor for ``url`` and ``authorization``.
            environment: Environment variables available to placeholders.
        """
        self._requester = requester
        self._placeholders = placeholders or PlaceholderProcessor()
        self._environment = environment or LocalEnvironment()

    async def __call__(self, broker: BrokerClient, job: Job) -> bool:
        """Handle one job.

        Args:
            broker: Broker client used to complete or fail the job.
            job: The activated job.

        Returns:
            True if the job was completed, False if it was failed.
        """
        try:
            result = await self.execute(job)
        except WorkerError as e:
            await self._fail(broker, job, e.message)
            return False
        except Exception as e:
            logger.exception("Unexpected error handling job %s", job.key)
            await self._fail(broker, job, str(e) or type(e).__name__)
            return False

        try:
            await broker.complete_job(job.key, result)
        except BrokerError as e:
            await self._fail(broker, job, e.message)
            return False

        logger.info("Completed job with key %s", job.key)
        return True

    async def execute(self, job: Job) -> dict[str, Any]:
        """Resolve parameters, send the request and build the result variables.

        Raises:
            WorkerError: If a parameter is invalid or the request fails.
        """
        url = require_string(job, PARAMETER_URL)
        authorization = optional_string(job, PARAMETER_AUTHORIZATION)
        environment_variables = await self._environment_variables_for(url, authorization)

        url = self._placeholders.process(url, job, environment_variables)
        if authorization is not None:
            authorization = self._placeholders.process(authorization, job, environment_variables)
        method = self._resolve_method(job)
        body = serialize_body(get_parameter(job, PARAMETER_BODY))

        logger.debug("Job %s: %s %s", job.key, method, url)
        result = await self._requester.request(url, method, body, authorization)

        return {"statusCode": result.status_code, "body": result.body}

    async def _environment_variables_for(self, *values: str | None) -> Mapping[str, str] | None:
        """Load environment variables only when a value contains a placeholder."""
        if any(value and PLACEHOLDER_START in value for value in values):
            return await self._environment.get_variables()
        return None

    def _resolve_method(self, job: Job) -> str:
        """Resolve the HTTP method; anything unusable falls back to GET."""
        try:
            method = optional_string(job, PARAMETER_METHOD)
        except ParameterError as e:
            logger.debug("Job %s: using %s, method not usable: %s", job.key, DEFAULT_METHOD, e)
            return DEFAULT_METHOD
        return method.upper() if method else DEFAULT_METHOD

    async def _fail(self, broker: BrokerClient, job: Job, message: str) -> None:
        """Fail the job with one retry less and log the outcome."""
        retries = job.retries - 1
        logger.warning("Failed to complete job %s: %s", job.key, message)
        try:
            await broker.fail_job(job.key, retries, message)
        except BrokerError as e:
            logger.error("Failed to report failure of job %s: %s", job.key, e.message)
