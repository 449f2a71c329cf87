"""
Error monitor keeping a bounded history of classified errors and operation timings.
"""

import logging
import time
from collections import deque
from datetime import datetime
from typing import Any, Awaitable, Callable, Deque, Dict, Optional, TypeVar

from ..config import MAX_ERROR_HISTORY, RECENT_ERRORS_IN_SUMMARY, SLOW_OPERATION_THRESHOLD_MS
from ..exceptions import ErrorKind
from .error_context import ErrorContext, ErrorSeverity
from .models import NormalizedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SEVERITY_BY_KIND = {
    ErrorKind.DATABASE: ErrorSeverity.CRITICAL,
    ErrorKind.AUTHENTICATION: ErrorSeverity.CRITICAL,
    ErrorKind.AUTHORIZATION: ErrorSeverity.CRITICAL,
    ErrorKind.NETWORK: ErrorSeverity.HIGH,
    ErrorKind.RATE_LIMIT: ErrorSeverity.HIGH,
    ErrorKind.VALIDATION: ErrorSeverity.LOW,
    ErrorKind.NOT_FOUND: ErrorSeverity.LOW,
}


class ErrorMonitor:
    """Records reported errors and summarizes them by kind and severity."""

    def __init__(self, max_history: int = MAX_ERROR_HISTORY):
        self.max_history = max_history
        self.error_history: Deque[ErrorContext] = deque(maxlen=max_history)
        self.performance_metrics: Deque[Dict[str, Any]] = deque(maxlen=max_history)

    @staticmethod
    def assess_severity(error: NormalizedError) -> ErrorSeverity:
        return _SEVERITY_BY_KIND.get(error.kind, ErrorSeverity.MEDIUM)

    def report(
        self,
        error: NormalizedError,
        original_error: Any = None,
        context: Optional[str] = None,
        log: bool = True,
        **additional_info: Any,
    ) -> ErrorContext:
        """
        Record a classified error and log it at a level matching its severity.

        Returns:
            The ErrorContext stored in history
        """
        error_context = ErrorContext(
            error=error,
            severity=self.assess_severity(error),
            timestamp=datetime.now(),
            context=context,
            original_error=repr(original_error) if original_error is not None else None,
            additional_info=additional_info,
        )
        self.error_history.append(error_context)

        if not log:
            return error_context

        label = context or "unlabelled"
        if error_context.severity == ErrorSeverity.CRITICAL:
            logger.error(f"Critical error [{label}]: {error.kind.value}: {error.message}")
        elif error_context.severity == ErrorSeverity.HIGH:
            logger.error(f"High severity error [{label}]: {error.kind.value}: {error.message}")
        else:
            logger.warning(f"Error occurred [{label}]: {error.kind.value}: {error.message}")

        return error_context

    def get_error_summary(self) -> Dict[str, Any]:
        """Get summary of error history."""
        if not self.error_history:
            return {"total_errors": 0}

        summary: Dict[str, Any] = {
            "total_errors": len(self.error_history),
            "by_kind": {},
            "by_severity": {},
            "recent_errors": [],
        }

        for entry in self.error_history:
            kind = entry.error.kind.value
            summary["by_kind"][kind] = summary["by_kind"].get(kind, 0) + 1

            severity = entry.severity.value
            summary["by_severity"][severity] = summary["by_severity"].get(severity, 0) + 1

        summary["recent_errors"] = [
            {
                "kind": entry.error.kind.value,
                "message": entry.error.message,
                "context": entry.context,
                "timestamp": entry.timestamp.isoformat(),
            }
            for entry in list(self.error_history)[-RECENT_ERRORS_IN_SUMMARY:]
        ]

        return summary

    async def measure_performance(
        self, operation_name: str, operation: Callable[[], Awaitable[T]]
    ) -> T:
        """
        Await ``operation`` and record how long it took.

        The outcome is returned or re-raised unchanged. Runs slower than
        SLOW_OPERATION_THRESHOLD_MS are also reported as slow operations.
        """
        start = time.perf_counter()
        try:
            result = await operation()
        except Exception as e:
            self._record_metric(operation_name, start, success=False, error=str(e))
            raise
        self._record_metric(operation_name, start, success=True)
        return result

    def _record_metric(
        self, operation_name: str, start: float, success: bool, error: Optional[str] = None
    ) -> None:
        duration_ms = (time.perf_counter() - start) * 1000
        metric: Dict[str, Any] = {
            "operation": operation_name,
            "duration_ms": duration_ms,
            "success": success,
        }
        if error is not None:
            metric["error"] = error
        self.performance_metrics.append(metric)
        logger.debug(
            f"Performance metric [{operation_name}]: {duration_ms:.1f}ms "
            f"({'success' if success else 'failed'})"
        )
        self.report_slow_operation(operation_name, duration_ms)

    def report_slow_operation(
        self,
        operation_name: str,
        duration_ms: float,
        threshold_ms: float = SLOW_OPERATION_THRESHOLD_MS,
    ) -> bool:
        """Log a warning when ``duration_ms`` exceeds ``threshold_ms``."""
        if duration_ms <= threshold_ms:
            return False
        logger.warning(
            f"Slow operation [{operation_name}]: {duration_ms:.1f}ms "
            f"exceeded {threshold_ms}ms threshold"
        )
        return True

    def clear(self) -> None:
        self.error_history.clear()
        self.performance_metrics.clear()
