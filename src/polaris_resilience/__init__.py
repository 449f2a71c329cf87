"""
Error-handling and resilience layer for the Polaris productivity dashboard.
"""

from .context import ResilienceContext
from .error_handling import (
    CircuitBreaker,
    CircuitState,
    DatabaseErrorPolicy,
    ErrorMonitor,
    NormalizedError,
    Result,
    RetryPolicy,
    classify,
    graceful_degrade,
    retry_with_backoff,
    safe_execute,
    with_fallback,
    with_retry,
)
from .exceptions import CircuitBreakerOpen, ErrorKind, PolarisError

__version__ = "0.1.0"

__all__ = [
    "ResilienceContext",
    "CircuitBreaker",
    "CircuitState",
    "CircuitBreakerOpen",
    "DatabaseErrorPolicy",
    "ErrorKind",
    "ErrorMonitor",
    "NormalizedError",
    "PolarisError",
    "Result",
    "RetryPolicy",
    "classify",
    "graceful_degrade",
    "retry_with_backoff",
    "safe_execute",
    "with_fallback",
    "with_retry",
]
