"""
Circuit breaker pattern implementation for fault tolerance.
Stops calling a known-failing dependency until a cooldown has elapsed.
"""

import logging
import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from ..config import CIRCUIT_BREAKER_FAILURE_THRESHOLD, CIRCUIT_BREAKER_TIMEOUT
from ..exceptions import CircuitBreakerOpen, ConfigurationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker guarding one external dependency.

    States:
    - closed: normal operation, consecutive failures are counted
    - open: calls are rejected with CircuitBreakerOpen until the cooldown elapses
    - half_open: a single trial call is in flight; other calls are rejected

    Usage:
        breaker = CircuitBreaker("database", failure_threshold=5, recovery_timeout=60)
        rows = await breaker.execute(lambda: client.fetch_tasks(user_id))
    """

    def __init__(
        self,
        name: str = "default",
        failure_threshold: int = CIRCUIT_BREAKER_FAILURE_THRESHOLD,
        recovery_timeout: float = CIRCUIT_BREAKER_TIMEOUT,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize circuit breaker.

        Args:
            name: Dependency name, used in logs and CircuitBreakerOpen
            failure_threshold: Consecutive failures before opening
            recovery_timeout: Cooldown in seconds before a trial call is allowed
            clock: Source of the current time; defaults to timezone-aware UTC
        """
        if failure_threshold < 1:
            raise ConfigurationError("failure_threshold", "must be at least 1")
        if recovery_timeout < 0:
            raise ConfigurationError("recovery_timeout", "must not be negative")

        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.clock = clock or _utc_now

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.last_failure_time: Optional[datetime] = None
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    def _timeout_remaining(self) -> float:
        if self.last_failure_time is None:
            return 0.0
        elapsed = (self.clock() - self.last_failure_time).total_seconds()
        return max(0.0, self.recovery_timeout - elapsed)

    def _admit(self) -> bool:
        """
        Decide whether a call may proceed.

        Returns:
            True when the call is the half-open trial, False for a normal call

        Raises:
            CircuitBreakerOpen: while cooling down or while a trial is in flight
        """
        with self._lock:
            if self.state == CircuitState.CLOSED:
                return False

            remaining = self._timeout_remaining()
            if self.state == CircuitState.OPEN and remaining <= 0:
                self.state = CircuitState.HALF_OPEN
                logger.info(
                    f"Circuit breaker '{self.name}' transitioned to half-open state"
                )
                return True

            raise CircuitBreakerOpen(self.name, self.failure_count, remaining)

    def _release_trial(self) -> None:
        with self._lock:
            if self.state == CircuitState.HALF_OPEN:
                self.state = CircuitState.OPEN

    def record_success(self, is_trial: bool = False) -> None:
        """Record successful operation."""
        with self._lock:
            if is_trial and self.state == CircuitState.HALF_OPEN:
                self.state = CircuitState.CLOSED
                self.failure_count = 0
                logger.info(f"Circuit breaker '{self.name}' closed after successful trial")
            elif not is_trial and self.state == CircuitState.CLOSED:
                self.failure_count = 0

    def record_failure(self, is_trial: bool = False) -> None:
        """Record failed operation and potentially open circuit."""
        with self._lock:
            if is_trial and self.state == CircuitState.HALF_OPEN:
                # Trial failed: back to open with a fresh cooldown
                self.failure_count += 1
                self.last_failure_time = self.clock()
                self.state = CircuitState.OPEN
                logger.warning(
                    f"Circuit breaker '{self.name}' reopened after failure in half-open state"
                )
            elif not is_trial and self.state == CircuitState.CLOSED:
                self.failure_count += 1
                self.last_failure_time = self.clock()
                if self.failure_count >= self.failure_threshold:
                    self.state = CircuitState.OPEN
                    logger.warning(
                        f"Circuit breaker '{self.name}' opened after {self.failure_count} failures"
                    )

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``operation`` through the breaker.

        The operation's own exception is always re-raised unchanged; the
        breaker only adds CircuitBreakerOpen for rejected calls.
        """
        is_trial = self._admit()
        try:
            result = await operation()
        except Exception:
            self.record_failure(is_trial)
            raise
        except BaseException:
            # Cancelled trial: give the next caller the trial slot
            if is_trial:
                self._release_trial()
            raise
        self.record_success(is_trial)
        return result

    def get_state(self) -> Dict[str, Any]:
        """Read-only snapshot for monitoring and tests."""
        with self._lock:
            return {
                "state": self.state.value,
                "failures": self.failure_count,
                "last_failure_time": self.last_failure_time,
            }
