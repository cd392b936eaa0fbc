"""Exception hierarchy for the HTTP worker.

Every error raised while handling a job derives from WorkerError. The job
handler turns any of them into a fail command carrying the error message,
so the message of each exception is written for an operator reading the
incident in the broker.
"""

from __future__ import annotations


class WorkerError(Exception):
    """Base exception for HTTP worker errors."""

    def __init__(self, message: str) -> None:
        """Initialize with a human-readable message.

        Args:
            message: Description of the failure.
        """
        self.message = message
        super().__init__(message)


class ParameterError(WorkerError):
    """A job parameter is missing, has the wrong type, or cannot be read."""

    def __init__(self, message: str, name: str | None = None) -> None:
        self.name = name
        super().__init__(message)


class PlaceholderError(WorkerError):
    """A placeholder template in a parameter could not be rendered."""

    pass


class HttpClientError(WorkerError):
    """Base exception for outbound HTTP request errors."""

    pass


class BodySerializationError(HttpClientError):
    """The request body could not be serialized as JSON."""

    pass


class RequestFailedError(HttpClientError):
    """The request could not be sent or no response was received."""

    pass


class ResponseDecodeError(HttpClientError):
    """The response declared a JSON content type but its body is not valid JSON.

    The status code and raw body are kept so callers can report them.
    """

    def __init__(self, message: str, status_code: int, raw_body: bytes) -> None:
        self.status_code = status_code
        self.raw_body = raw_body
        super().__init__(message)


class BrokerError(WorkerError):
    """A command sent to the broker failed."""

    pass


class BrokerConnectionError(BrokerError):
    """The broker gateway could not be reached."""

    pass


class EnvironmentVariablesError(WorkerError):
    """Environment variables for placeholders could not be loaded."""

    pass
