"""
Resilience context built once at process start and passed to every call site.
"""

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from .config import CIRCUIT_BREAKER_FAILURE_THRESHOLD, CIRCUIT_BREAKER_TIMEOUT, CIRCUIT_CONFIGS
from .error_handling import (
    CircuitBreaker,
    ErrorMonitor,
    Result,
    NormalizedError,
    RetryPolicy,
    classify,
    safe_execute,
    with_retry,
)
from .exceptions import CircuitBreakerOpen

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResilienceContext:
    """
    Owns one circuit breaker per protected dependency plus the shared
    retry policy and error monitor.
    """

    def __init__(
        self,
        breaker_configs: Optional[Dict[str, Dict[str, Any]]] = None,
        retry_policy: Optional[RetryPolicy] = None,
        monitor: Optional[ErrorMonitor] = None,
    ):
        self.start_time = datetime.now()
        self.retry_policy = retry_policy or RetryPolicy()
        self.monitor = monitor or ErrorMonitor()

        configs = CIRCUIT_CONFIGS if breaker_configs is None else breaker_configs
        self.circuit_breakers: Dict[str, CircuitBreaker] = {
            name: CircuitBreaker(
                name=name,
                failure_threshold=settings.get(
                    "failure_threshold", CIRCUIT_BREAKER_FAILURE_THRESHOLD
                ),
                recovery_timeout=settings.get("recovery_timeout", CIRCUIT_BREAKER_TIMEOUT),
            )
            for name, settings in configs.items()
        }

        logger.info(
            f"Resilience context initialized with breakers: {', '.join(self.circuit_breakers) or 'none'}"
        )

    def breaker(self, dependency: str) -> CircuitBreaker:
        """Look up the breaker for ``dependency``; unknown names raise KeyError."""
        try:
            return self.circuit_breakers[dependency]
        except KeyError:
            raise KeyError(f"No circuit breaker configured for '{dependency}'") from None

    async def call(
        self,
        dependency: str,
        operation: Callable[[], Awaitable[T]],
        retry: bool = True,
    ) -> T:
        """
        Run ``operation`` through the dependency's breaker, retrying transient
        failures with the context's policy when ``retry`` is set.
        """
        breaker = self.breaker(dependency)

        async def guarded() -> T:
            return await breaker.execute(operation)

        if not retry:
            return await guarded()
        return await with_retry(
            guarded, self.retry_policy, classifier=self._breaker_aware_classifier()
        )

    def _breaker_aware_classifier(self) -> Callable[[Any], NormalizedError]:
        """
        Classifier for one ``call``: an open breaker is only worth retrying
        when it will have cooled down by the time the next backoff ends.
        """
        failures = 0

        def classify_failure(raw: Any) -> NormalizedError:
            nonlocal failures
            failures += 1
            error = classify(raw)
            if isinstance(raw, CircuitBreakerOpen):
                next_delay_ms = self.retry_policy.delay_ms(failures + 1)
                if raw.timeout_remaining * 1000 > next_delay_ms:
                    return error.model_copy(update={"retryable": False})
            return error

        return classify_failure

    async def safe_call(
        self,
        dependency: str,
        operation: Callable[[], Awaitable[T]],
        context: str,
        retry: bool = True,
    ) -> Result:
        """Result-typed form of ``call``; failures are logged and monitored."""
        return await safe_execute(
            lambda: self.call(dependency, operation, retry=retry),
            context,
            monitor=self.monitor,
        )

    def get_all_states(self) -> Dict[str, Dict[str, Any]]:
        return {name: cb.get_state() for name, cb in self.circuit_breakers.items()}
