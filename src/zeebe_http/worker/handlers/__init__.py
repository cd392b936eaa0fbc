"""Job handlers for the HTTP worker.

- http: Perform an HTTP request for jobs of type ``http``
"""

from zeebe_http.worker.handlers.http import HttpJobHandler

__all__ = ["HttpJobHandler"]
