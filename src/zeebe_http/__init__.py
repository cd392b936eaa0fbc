"""Zeebe HTTP worker.

A job worker for the Zeebe workflow engine that handles jobs of type
``http``: it resolves a URL, method and body from the job, performs one
outbound HTTP request and completes the job with the response status code
and body.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
