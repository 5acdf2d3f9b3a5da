"""Shared test fixtures."""

from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from autotask.scheduler.store import ConfigStore
from autotask.scheduler.timers import TimerRegistry

# A Monday morning, local to whatever timezone the test runs in.
FIXED_NOW = datetime(2026, 10, 19, 8, 0, 0)


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Reset process-wide singletons before and after each test."""
    TimerRegistry._reset()
    ConfigStore._reset()
    yield
    TimerRegistry._reset()
    ConfigStore._reset()


@pytest.fixture
def invoker() -> AsyncMock:
    """A OneBot invoker whose every call succeeds with no data."""
    inv = AsyncMock()
    inv.call = AsyncMock(return_value=None)
    return inv


@pytest.fixture
def sleep() -> AsyncMock:
    """Stand-in for asyncio.sleep so jitter never actually waits."""
    return AsyncMock(return_value=None)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW
