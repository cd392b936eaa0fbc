"""Placeholder rendering for string parameters.

Parameters may reference other job data with ``{{name}}`` placeholders,
e.g. ``https://api.example.com/orders/{{orderId}}``. Templates come from
workflow definitions and job payloads, so they are rendered in a sandboxed
Jinja2 environment. Unknown names render as an empty string.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from jinja2 import TemplateError
from jinja2.sandbox import SandboxedEnvironment

from zeebe_http.broker.base import Job
from zeebe_http.core.errors import PlaceholderError
from zeebe_http.services.parameters import as_mapping

logger = logging.getLogger(__name__)

PLACEHOLDER_START = "{{"


class PlaceholderProcessor:
    """Renders ``{{name}}`` placeholders against job data.

    Context precedence, lowest first: environment variables, job variables,
    job custom headers, then ``jobKey`` and ``processInstanceKey``.
    """

    def __init__(self) -> None:
        # Output is a URL or header value, never HTML
        self._env = SandboxedEnvironment(autoescape=False)  # noqa: S701

    def build_context(
        self,
        job: Job,
        environment_variables: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        """Build the rendering context for a job.

        Raises:
            ParameterError: If the job's headers or variables are not objects.
        """
        context: dict[str, Any] = dict(environment_variables or {})
        context.update(as_mapping(job.variables, "variables"))
        context.update(as_mapping(job.custom_headers, "custom headers"))
        context["jobKey"] = job.key
        context["processInstanceKey"] = job.process_instance_key
        return context

    def process(
        self,
        value: str,
        job: Job,
        environment_variables: Mapping[str, str] | None = None,
    ) -> str:
        """Render placeholders in ``value``; strings without any are returned as-is.

        Raises:
            PlaceholderError: If the template cannot be parsed or rendered.
        """
        if PLACEHOLDER_START not in value:
            return value

        try:
            template = self._env.from_string(value)
            rendered = template.render(self.build_context(job, environment_variables))
        except TemplateError as e:
            raise PlaceholderError(f"Failed to render placeholders in '{value}': {e}") from e

        logger.debug("Rendered placeholders for job %s", job.key)
        return rendered
