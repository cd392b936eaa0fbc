"""Broker access for the HTTP worker.

- base: Job data model and the BrokerClient protocol
- zeebe: Zeebe gateway implementation of BrokerClient
"""

from zeebe_http.broker.base import BrokerClient, Job

__all__ = ["BrokerClient", "Job"]
