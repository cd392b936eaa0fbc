"""Services used by the HTTP job handler.

- parameters: Resolve job parameters from headers and variables
- placeholders: Render {{name}} placeholders in string parameters
- environment: Local or remote environment variables exposed to placeholders
- http_client: Perform the outbound request and map the response
"""

from zeebe_http.services.environment import (
    EnvironmentVariables,
    LocalEnvironment,
    RemoteEnvironment,
    create_environment,
    load_local_environment,
)
from zeebe_http.services.http_client import HttpRequester, HttpResult, serialize_body
from zeebe_http.services.parameters import (
    get_parameter,
    optional_string,
    require_string,
)
from zeebe_http.services.placeholders import PlaceholderProcessor

__all__ = [
    "EnvironmentVariables",
    "HttpRequester",
    "HttpResult",
    "LocalEnvironment",
    "PlaceholderProcessor",
    "RemoteEnvironment",
    "create_environment",
    "get_parameter",
    "load_local_environment",
    "optional_string",
    "require_string",
    "serialize_body",
]
