"""
Pytest configuration and shared fixtures for the resilience layer tests.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional

import pytest

from polaris_resilience.error_handling import CircuitBreaker, ErrorMonitor


class FakeClock:
    """Manually advanced clock for circuit breaker tests."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class ScriptedOperation:
    """
    Async operation that raises the scripted errors in order, then returns
    ``result``. Counts every invocation.
    """

    def __init__(self, errors: Optional[List[BaseException]] = None, result: Any = "ok"):
        self.errors = list(errors or [])
        self.result = result
        self.calls = 0

    async def __call__(self) -> Any:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class AlwaysFails:
    """Async operation that raises the same error on every call."""

    def __init__(self, error: BaseException):
        self.error = error
        self.calls = 0

    async def __call__(self) -> Any:
        self.calls += 1
        raise self.error


@pytest.fixture
def clock():
    """Provide a fake clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def breaker(clock):
    """Provide a breaker with threshold 5 and a 60 second cooldown."""
    return CircuitBreaker(
        name="database", failure_threshold=5, recovery_timeout=60, clock=clock
    )


@pytest.fixture
def error_monitor():
    """Provide a fresh ErrorMonitor."""
    return ErrorMonitor(max_history=10)


@pytest.fixture(autouse=True)
def capture_package_logs(caplog):
    """Capture package log records at DEBUG for assertions."""
    caplog.set_level(logging.DEBUG, logger="polaris_resilience")
    yield caplog
