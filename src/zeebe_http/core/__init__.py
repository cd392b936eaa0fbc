"""Core components shared across the worker.

- Configuration management
- Logging setup
- Error hierarchy
"""

from zeebe_http.core.config import (
    JOB_TYPE,
    ConfigValidationError,
    Settings,
)
from zeebe_http.core.errors import (
    BodySerializationError,
    BrokerConnectionError,
    BrokerError,
    EnvironmentVariablesError,
    HttpClientError,
    ParameterError,
    PlaceholderError,
    RequestFailedError,
    ResponseDecodeError,
    WorkerError,
)
from zeebe_http.core.settings import clear_settings_cache, get_settings

__all__ = [
    "JOB_TYPE",
    "BodySerializationError",
    "BrokerConnectionError",
    "BrokerError",
    "ConfigValidationError",
    "EnvironmentVariablesError",
    "HttpClientError",
    "ParameterError",
    "PlaceholderError",
    "RequestFailedError",
    "ResponseDecodeError",
    "Settings",
    "WorkerError",
    "clear_settings_cache",
    "get_settings",
]
