"""Job parameter resolution.

A parameter is looked up in the job's custom headers first and in the job
variables second; headers always win. Values are arbitrary JSON values and
are coerced explicitly at each call site that needs a concrete type.

Nothing is cached: every lookup re-reads the job it is given.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, TypeAlias

from zeebe_http.broker.base import Job
from zeebe_http.core.errors import ParameterError

JsonValue: TypeAlias = (
    str | int | float | bool | None | list["JsonValue"] | dict[str, "JsonValue"]
)

PARAMETER_URL = "url"
PARAMETER_METHOD = "method"
PARAMETER_BODY = "body"
PARAMETER_AUTHORIZATION = "authorization"


def as_mapping(document: Mapping[str, Any] | str | bytes | None, what: str) -> Mapping[str, Any]:
    """Return a job document as a mapping.

    Documents normally arrive already decoded. A JSON text document is
    decoded here; an empty one counts as an empty object.

    Args:
        document: The header or variables document.
        what: Document name used in error messages.

    Raises:
        ParameterError: If the document is not a JSON object.
    """
    if document is None:
        return {}
    if isinstance(document, Mapping):
        return document

    if isinstance(document, str | bytes):
        if not document.strip():
            return {}
        try:
            decoded = json.loads(document)
        except ValueError as e:
            raise ParameterError(f"Failed to read job {what} as JSON: {e}") from e
        if isinstance(decoded, dict):
            return decoded

    raise ParameterError(f"Job {what} is not a JSON object")


def get_parameter(job: Job, name: str) -> JsonValue:
    """Resolve a parameter from the job's headers, falling back to its variables.

    Args:
        job: The job to read.
        name: Parameter name.

    Returns:
        The header value if present, else the variable value, else None.

    Raises:
        ParameterError: If headers or variables cannot be read as objects.
    """
    headers = as_mapping(job.custom_headers, "custom headers")
    value = headers.get(name)
    if value is not None:
        return value

    variables = as_mapping(job.variables, "variables")
    return variables.get(name)


def coerce_string(value: JsonValue, name: str) -> str:
    """Coerce a resolved value to a string.

    Raises:
        ParameterError: If the value is not a string.
    """
    if not isinstance(value, str):
        raise ParameterError(
            f"Parameter '{name}' must be a string, got {type(value).__name__}",
            name=name,
        )
    return value


def require_string(job: Job, name: str) -> str:
    """Resolve a required, non-empty string parameter.

    Raises:
        ParameterError: If the parameter is absent, empty, or not a string.
    """
    value = get_parameter(job, name)
    if value is None or value == "":
        raise ParameterError(f"Missing required parameter '{name}'", name=name)
    return coerce_string(value, name)


def optional_string(job: Job, name: str) -> str | None:
    """Resolve an optional string parameter; empty strings count as absent.

    Raises:
        ParameterError: If the documents cannot be read or the value is not a string.
    """
    value = get_parameter(job, name)
    if value is None or value == "":
        return None
    return coerce_string(value, name)
