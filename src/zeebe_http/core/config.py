"""Configuration management for the HTTP worker.

All configuration is loaded from environment variables using Pydantic
Settings. Variables are not prefixed so that the historical ``BROKER``
variable keeps working unchanged.

Example:
    export BROKER=zeebe-gateway:26500
    export WORKER_MAX_JOBS=16
    export LOG_LEVEL=DEBUG
"""

from __future__ import annotations

import logging
from typing import Annotated

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Job type this worker registers for. Not configurable.
JOB_TYPE = "http"

DEFAULT_BROKER_ADDRESS = "0.0.0.0:26500"
DEFAULT_WORKER_NAME = "http-go"
DEFAULT_MAX_JOBS = 32
DEFAULT_ENV_VARS_RELOAD_RATE_MS = 15_000

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """HTTP worker configuration container.

    Example environment variables:
        BROKER=0.0.0.0:26500
        WORKER_NAME=http-go
        WORKER_MAX_JOBS=32
        PROBE_PORT=8080
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_default=True,
    )

    broker: str = Field(
        default=DEFAULT_BROKER_ADDRESS,
        description="Broker gateway address (host:port)",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    # Worker settings
    worker_name: str = Field(
        default=DEFAULT_WORKER_NAME,
        description="Worker name reported to the broker on activation",
    )
    worker_max_jobs: Annotated[int, Field(ge=1, le=1024)] = Field(
        default=DEFAULT_MAX_JOBS,
        description="Maximum number of jobs handled concurrently",
    )
    worker_poll_interval: Annotated[float, Field(gt=0)] = Field(
        default=1.0,
        description="Seconds to wait before polling again when no job was activated",
    )
    worker_job_timeout_ms: Annotated[int, Field(ge=1000)] = Field(
        default=300_000,
        description="Lease duration of an activated job in milliseconds",
    )
    worker_request_timeout_ms: Annotated[int, Field(ge=0)] = Field(
        default=5_000,
        description="Long-poll duration of one activation request in milliseconds",
    )
    worker_connect_timeout: Annotated[float, Field(gt=0)] = Field(
        default=10.0,
        description="Seconds to wait for the broker gateway at startup",
    )

    # Health/readiness probe
    probe_enabled: bool = Field(
        default=True,
        description="Serve /healthz and /readyz",
    )
    probe_host: str = Field(
        default="0.0.0.0",  # noqa: S104
        description="Probe server bind address",
    )
    probe_port: Annotated[int, Field(ge=1, le=65535)] = Field(
        default=8080,
        description="Probe server port",
    )

    # Local environment variables exposed to placeholders
    local_env_vars_prefix: str = Field(
        default="ZEEBE_ENV_",
        description="Prefix selecting process environment variables for placeholders",
    )
    local_env_vars_remove_prefix: bool = Field(
        default=True,
        description="Strip the prefix from exposed environment variable names",
    )

    # Remote environment variables (replace the local ones when ENV_VARS_URL is set)
    env_vars_url: str | None = Field(
        default=None,
        description="URL returning environment variables as a JSON list of {key, value}",
    )
    env_vars_reload_rate: Annotated[int, Field(ge=0)] = Field(
        default=DEFAULT_ENV_VARS_RELOAD_RATE_MS,
        description="Milliseconds remote environment variables are cached",
    )
    env_vars_m2m_base_url: str | None = Field(
        default=None,
        description="Token endpoint for the machine-to-machine client credentials grant",
    )
    env_vars_m2m_client_id: str | None = Field(
        default=None,
        description="Client ID for the token endpoint",
    )
    env_vars_m2m_client_secret: SecretStr | None = Field(
        default=None,
        description="Client secret for the token endpoint",
    )
    env_vars_m2m_audience: str | None = Field(
        default=None,
        description="Audience requested from the token endpoint",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level name."""
        upper = v.upper()
        if upper not in VALID_LOG_LEVELS:
            msg = f"log_level must be one of {', '.join(VALID_LOG_LEVELS)}"
            raise ValueError(msg)
        return upper

    @field_validator("broker")
    @classmethod
    def validate_broker(cls, v: str) -> str:
        """Require a host:port address."""
        host, sep, port = v.strip().rpartition(":")
        if not sep or not host or not port.isdigit():
            msg = "broker must be a host:port address"
            raise ValueError(msg)
        return v.strip()


class ConfigValidationError(Exception):
    """Raised when configuration validation fails beyond Pydantic's checks."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize with error details.

        Args:
            message: Human-readable error description.
            field: Optional field name that failed validation.
        """
        self.message = message
        self.field = field
        super().__init__(message)


def validate_settings(settings: Settings) -> None:
    """Perform runtime validation that cannot be expressed declaratively.

    Args:
        settings: Settings instance to validate.

    Raises:
        ConfigValidationError: If validation fails.
    """
    if settings.worker_request_timeout_ms >= settings.worker_job_timeout_ms:
        raise ConfigValidationError(
            "WORKER_REQUEST_TIMEOUT_MS must be shorter than WORKER_JOB_TIMEOUT_MS.",
            field="worker_request_timeout_ms",
        )

    if not settings.local_env_vars_prefix:
        # An empty prefix would expose the whole process environment
        raise ConfigValidationError(
            "LOCAL_ENV_VARS_PREFIX must not be empty.",
            field="local_env_vars_prefix",
        )

    if settings.env_vars_m2m_base_url:
        if not settings.env_vars_url:
            raise ConfigValidationError(
                "ENV_VARS_M2M_BASE_URL requires ENV_VARS_URL.",
                field="env_vars_url",
            )
        secret = settings.env_vars_m2m_client_secret
        if not settings.env_vars_m2m_client_id or not secret or not secret.get_secret_value():
            raise ConfigValidationError(
                "ENV_VARS_M2M_CLIENT_ID and ENV_VARS_M2M_CLIENT_SECRET are required "
                "when ENV_VARS_M2M_BASE_URL is set.",
                field="env_vars_m2m_client_id",
            )

    logger.info(
        "Configuration validated: broker=%s, worker_name=%s, max_jobs=%d",
        settings.broker,
        settings.worker_name,
        settings.worker_max_jobs,
    )
