"""
Error handling module for the dashboard's calls to external dependencies.
Provides error classification, retry with backoff, circuit breakers and error monitoring.
"""

from .circuit_breaker import CircuitBreaker, CircuitState
from .classifier import DEFAULT_DATABASE_POLICY, DatabaseErrorPolicy, classify
from .error_context import ErrorContext, ErrorSeverity
from .error_monitor import ErrorMonitor
from .models import NormalizedError, Result, RetryPolicy
from .retry import (
    graceful_degrade,
    retry_with_backoff,
    safe_execute,
    with_fallback,
    with_retry,
)

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "DEFAULT_DATABASE_POLICY",
    "DatabaseErrorPolicy",
    "classify",
    "ErrorContext",
    "ErrorSeverity",
    "ErrorMonitor",
    "NormalizedError",
    "Result",
    "RetryPolicy",
    "graceful_degrade",
    "retry_with_backoff",
    "safe_execute",
    "with_fallback",
    "with_retry",
]
