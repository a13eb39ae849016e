"""Pytest configuration for all tests."""

from datetime import datetime, timezone

import pytest
from prometheus_client import CollectorRegistry

from src.community.metrics import EngineMetrics


FIXED_NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_now() -> datetime:
    """A fixed UTC instant used as the service clock."""
    return FIXED_NOW


@pytest.fixture
def metrics() -> EngineMetrics:
    """Metrics bound to an isolated registry."""
    return EngineMetrics(registry=CollectorRegistry())


@pytest.fixture(autouse=True)
def clear_community_env(monkeypatch):
    """Keep COMMUNITY_* variables from the host out of settings tests."""
    import os

    for key in list(os.environ):
        if key.startswith("COMMUNITY_"):
            monkeypatch.delenv(key, raising=False)
