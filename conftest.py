"""
Global pytest configuration for VitalWatch.

Shared fixtures and automatic markers for the unit and integration suites.
"""

import os

import pytest
from prometheus_client import CollectorRegistry

from vitalwatch.config import AlertEngineConfig
from vitalwatch.services.metrics import AlertEngineMetrics
from vitalwatch.services.record_store import RecordStore


BASE_TIME_MS = 1_700_000_000_000


class FakeClock:
    """Controllable epoch-millisecond clock."""

    def __init__(self, now_ms: int = BASE_TIME_MS):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, *, minutes: float = 0, seconds: float = 0, millis: int = 0):
        self.now_ms += int(minutes * 60_000 + seconds * 1000 + millis)


@pytest.fixture
def base_time():
    """Standard test timestamp in epoch milliseconds."""
    return BASE_TIME_MS


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return AlertEngineConfig()


@pytest.fixture
def registry():
    return CollectorRegistry()


@pytest.fixture
def metrics(registry):
    return AlertEngineMetrics(registry)


@pytest.fixture
def store(metrics):
    return RecordStore(metrics=metrics)


def pytest_collection_modifyitems(config, items):
    """Add markers based on test location."""
    for item in items:
        if "performance" in item.nodeid.lower():
            item.add_marker(pytest.mark.performance)

        if "integration" in item.nodeid:
            item.add_marker(pytest.mark.integration)

        if "unit" in item.nodeid:
            item.add_marker(pytest.mark.unit)


def pytest_runtest_setup(item):
    """Skip performance tests when requested by the environment."""
    if item.get_closest_marker("performance"):
        if os.environ.get("SKIP_PERFORMANCE_TESTS", "false").lower() == "true":
            pytest.skip("Performance tests skipped in this environment")
