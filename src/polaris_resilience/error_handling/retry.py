"""
Retry engine with exponential backoff, fallback variants and result-typed safe wrappers.

Two entry-point shapes share the same retry/classify logic:
- raising: with_retry, with_fallback, graceful_degrade
- result-typed: retry_with_backoff, safe_execute (never raise on failure)
"""

import asyncio
import inspect
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from ..config import DEFAULT_BASE_DELAY_MS, DEFAULT_MAX_ATTEMPTS
from .classifier import classify
from .error_monitor import ErrorMonitor
from .models import NormalizedError, Result, RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")
F = TypeVar("F")

Operation = Callable[[], Awaitable[T]]


async def with_retry(
    operation: Operation[T],
    policy: Optional[RetryPolicy] = None,
    *,
    classifier: Callable[[Any], NormalizedError] = classify,
) -> T:
    """
    Run ``operation`` and retry retryable failures with exponential backoff.

    Attempts are strictly sequential. A non-retryable failure is re-raised
    immediately whatever budget remains; once ``max_attempts`` is spent the
    last exception is re-raised unchanged.

    Args:
        operation: Zero-argument coroutine function
        policy: Attempt budget and backoff base; defaults to RetryPolicy()
        classifier: Maps an exception to a NormalizedError

    Returns:
        The operation's result from the first successful attempt
    """
    policy = policy or RetryPolicy()
    attempt = 1

    while True:
        try:
            return await operation()
        except Exception as e:
            error = classifier(e)
            if not error.retryable:
                logger.debug(
                    f"Not retrying {error.kind.value} error on attempt {attempt}: {error.message}"
                )
                raise

            if attempt >= policy.max_attempts:
                logger.warning(
                    f"Giving up after {attempt} attempts: {error.kind.value}: {error.message}"
                )
                raise

            attempt += 1
            delay_ms = policy.delay_ms(attempt)
            logger.warning(
                f"Attempt {attempt - 1}/{policy.max_attempts} failed "
                f"({error.kind.value}: {error.message}), retrying in {delay_ms}ms"
            )
            if delay_ms > 0:
                await asyncio.sleep(delay_ms / 1000)


async def _run_with_alternative(
    primary: Operation[T],
    alternative: Callable[[], Union[Awaitable[F], F]],
    log_message: str,
) -> Union[T, F]:
    try:
        return await primary()
    except Exception as e:
        logger.warning(f"{log_message}: {e!r}")

    result = alternative()
    if inspect.isawaitable(result):
        result = await result
    return result


async def with_fallback(
    primary: Operation[T], secondary: Callable[[], Union[Awaitable[T], T]]
) -> T:
    """Run ``primary``; on any failure return ``secondary()`` instead.

    ``secondary`` may return a plain value (e.g. cached or static data) or an
    awaitable. Its own failure propagates.
    """
    return await _run_with_alternative(
        primary, secondary, "Primary operation failed, using fallback"
    )


async def graceful_degrade(
    primary: Operation[T], degraded: Callable[[], Union[Awaitable[F], F]]
) -> Union[T, F]:
    """Run ``primary``; on any failure switch to the reduced-functionality path."""
    return await _run_with_alternative(
        primary, degraded, "Operation failed, degrading gracefully"
    )


async def _as_result(awaitable: Awaitable[T]) -> Result:
    try:
        data = await awaitable
    except Exception as e:
        return Result.fail(classify(e))
    return Result.ok(data)


async def retry_with_backoff(
    operation: Operation[T],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
) -> Result:
    """Result-typed form of with_retry: terminal failures become ``Result.fail``."""
    policy = RetryPolicy(max_attempts=max_attempts, base_delay_ms=base_delay_ms)
    return await _as_result(with_retry(operation, policy))


async def safe_execute(
    operation: Operation[T],
    context: str,
    monitor: Optional[ErrorMonitor] = None,
) -> Result:
    """
    Run ``operation`` once and return a tagged Result instead of raising.

    Failures are classified and logged as ``{error, original_error,
    timestamp, context}`` where ``context`` labels the call site.
    """
    try:
        data = await operation()
    except Exception as e:
        error = classify(e)
        record = {
            "error": error.to_dict(),
            "original_error": repr(e),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "context": context,
        }
        logger.error(f"Operation error [{context}]: {record}", extra={"error_record": record})
        if monitor is not None:
            monitor.report(error, e, context, log=False)
        return Result.fail(error)
    return Result.ok(data)
