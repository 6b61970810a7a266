"""
Shared pytest configuration for the Clutch test suite.
"""

import pytest

from clutch.infrastructure.observability import ClutchMetricsCollector, reset_metrics_collector

from fixtures.logging_fixtures import log_capture  # noqa: F401
from fixtures.loop_fixtures import clock, ceil_actuator, identity_actuator  # noqa: F401


@pytest.fixture(autouse=True)
def _fresh_global_metrics():
    """Every test starts with an empty global metrics collector."""
    reset_metrics_collector()
    yield
    reset_metrics_collector()


@pytest.fixture
def metrics():
    return ClutchMetricsCollector()
