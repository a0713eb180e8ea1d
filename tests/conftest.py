"""Pytest configuration and fixtures for glomers testing.

Runtime tests feed ``NodeRuntime`` in-memory byte streams; cluster tests use
``InProcessCluster`` with seeded random sources so every run is repeatable.
"""

import random
from collections.abc import Iterator
from typing import Any

import pytest
from loguru import logger

from glomers.core.config import NodeSettings
from glomers.gossip.broadcast import BroadcastNode


@pytest.fixture
def quiet_settings() -> NodeSettings:
    """Settings whose tick never fires during a short test."""
    return NodeSettings(tick_interval=3600.0, rng_seed=7)


@pytest.fixture
def seeded_settings() -> NodeSettings:
    return NodeSettings(rng_seed=1234)


@pytest.fixture
def broadcast_node() -> BroadcastNode:
    """Node n1 of a three node cluster, before any topology arrives."""
    return BroadcastNode("n1", ("n1", "n2", "n3"), rng=random.Random(42))


@pytest.fixture
def log_records() -> Iterator[list[dict[str, Any]]]:
    """Loguru records emitted during the test, DEBUG and up."""
    records: list[dict[str, Any]] = []
    handler_id = logger.add(
        lambda message: records.append(message.record), level="DEBUG"
    )
    yield records
    logger.remove(handler_id)
