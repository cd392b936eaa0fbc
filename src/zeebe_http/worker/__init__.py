"""HTTP worker service.

Activates jobs of type ``http`` from the broker, performs the described
HTTP request and reports the outcome.

Usage:
    # Run as module
    python -m zeebe_http.worker

    # Or via the console script
    zeebe-http-worker
"""

from zeebe_http.worker.main import Worker, WorkerConfig, run

__all__ = ["Worker", "WorkerConfig", "run"]
