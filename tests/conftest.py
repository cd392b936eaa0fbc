"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest

from tests.factories import FakeBroker


@pytest.fixture
def broker() -> FakeBroker:
    """Fresh fake broker with no queued jobs."""
    return FakeBroker()
