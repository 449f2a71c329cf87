"""
Custom exception classes and the error taxonomy for the dashboard's resilience layer.
"""

from typing import Any, Optional
from enum import Enum


class ErrorKind(str, Enum):
    """The only error vocabulary exposed to callers."""

    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    NETWORK = "network"
    DATABASE = "database"
    RATE_LIMIT = "rate_limit"
    UNKNOWN = "unknown"


# Kinds whose failures may succeed on a plain retry. Database errors are
# decided per code by the classifier's DatabaseErrorPolicy.
RETRYABLE_KINDS = frozenset({ErrorKind.NETWORK, ErrorKind.RATE_LIMIT})


class PolarisError(Exception):
    """Base exception for all errors raised by the dashboard itself."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        code: Optional[str] = None,
        details: Optional[Any] = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.code = code
        self.details = details

    @property
    def retryable(self) -> bool:
        if self.kind == ErrorKind.DATABASE:
            from .error_handling.classifier import DEFAULT_DATABASE_POLICY

            return DEFAULT_DATABASE_POLICY.is_transient(self.code, self.message)
        return self.kind in RETRYABLE_KINDS

    def to_normalized(self):
        """Convert to the NormalizedError record the classifier produces."""
        from .error_handling.models import NormalizedError

        return NormalizedError(
            kind=self.kind,
            message=self.message,
            code=self.code,
            details=self.details,
            retryable=self.retryable,
        )


class ValidationError(PolarisError):
    """Raised when input validation fails for a single field."""

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(
            f"Validation failed for {field}: {reason}",
            ErrorKind.VALIDATION,
            details={"field": field, "value": value, "reason": reason},
        )


class NotFoundError(PolarisError):
    """Raised when a requested resource does not exist."""

    def __init__(self, resource: str, identifier: Optional[str] = None):
        self.resource = resource
        self.identifier = identifier
        super().__init__(
            f"{resource} not found" + (f": {identifier}" if identifier else ""),
            ErrorKind.NOT_FOUND,
            details={"resource": resource, "identifier": identifier},
        )


class ConfigurationError(PolarisError):
    """Raised when configuration is invalid."""

    def __init__(self, setting: str, reason: str):
        self.setting = setting
        super().__init__(
            f"Invalid configuration for '{setting}': {reason}",
            ErrorKind.UNKNOWN,
            details={"setting": setting},
        )


class CircuitBreakerOpen(PolarisError):
    """Raised when a circuit breaker rejects a call while cooling down."""

    CODE = "CIRCUIT_BREAKER_OPEN"

    def __init__(self, service: str, failure_count: int, timeout_remaining: float):
        self.service = service
        self.failure_count = failure_count
        self.timeout_remaining = timeout_remaining
        super().__init__(
            "Service temporarily unavailable",
            ErrorKind.UNKNOWN,
            code=self.CODE,
            details={
                "service": service,
                "failure_count": failure_count,
                "timeout_remaining": timeout_remaining,
            },
        )

    @property
    def retryable(self) -> bool:
        # The dependency may recover once the cooldown has elapsed.
        return True

    def __str__(self) -> str:
        return (
            f"Circuit breaker for '{self.service}' is open "
            f"(failures: {self.failure_count}, timeout: {self.timeout_remaining:.1f}s)"
        )
