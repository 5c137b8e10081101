"""
Pytest configuration and shared fixtures.
"""

import pytest

from ipcsim.core.channels import Mechanism
from ipcsim.core.config import SimulationConfig
from ipcsim.core.engine import SimulationEngine


@pytest.fixture
def make_engine():
    """Factory for a seeded engine: make_engine(mechanism, producer_ms, consumer_ms, **config)."""

    def _make(mechanism=Mechanism.PIPE, producer_ms=100, consumer_ms=100, **kwargs):
        kwargs.setdefault("seed", 42)
        config = SimulationConfig(
            mechanism=mechanism,
            producer_period_ms=producer_ms,
            consumer_period_ms=consumer_ms,
            **kwargs,
        )
        return SimulationEngine(config)

    return _make


@pytest.fixture
def bottleneck_engine(make_engine):
    """Pipe with a producer every tick and a consumer every 10th tick."""
    return make_engine(Mechanism.PIPE, 100, 1000)


@pytest.fixture
def deadlock_engine(make_engine):
    """Resource pair with both actors acting every tick."""
    return make_engine(Mechanism.RESOURCE_PAIR, 100, 100)


@pytest.fixture
def run_ticks():
    """Step an engine `n` times and return every event emitted, oldest first."""

    def _run(engine, n):
        events = []
        for _ in range(n):
            events.extend(engine.step())
        return events

    return _run
