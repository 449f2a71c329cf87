"""
Error classifier: normalizes any raised or returned failure into a NormalizedError.

Classification is a decision table over a closed set of recognized shapes,
evaluated in priority order (first match wins):

1. pydantic validation errors
2. database not-found sentinel codes
3. other database errors (code/message pairs)
4. low-level network failures
5. timeouts
6. authentication / authorization / rate-limit language in the message
7. any other exception
8. anything else (plain objects, primitives, None)
"""

import asyncio
import logging
import socket
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from ..config import ERROR_MESSAGES
from ..exceptions import ErrorKind, PolarisError
from .models import NormalizedError

logger = logging.getLogger(__name__)


# PostgreSQL connection-exception class (08), resource and shutdown codes,
# plus PostgREST's own connection errors.
DEFAULT_TRANSIENT_CODES = frozenset(
    {
        "08000",
        "08001",
        "08003",
        "08004",
        "08006",
        "08007",
        "08P01",
        "53300",
        "57014",
        "57P01",
        "57P02",
        "57P03",
        "40001",
        "40P01",
        "PGRST000",
        "PGRST001",
        "PGRST002",
    }
)

DEFAULT_TRANSIENT_MESSAGES = (
    "could not connect",
    "failed to connect",
    "connection refused",
    "connection reset",
    "terminating connection",
    "server closed the connection",
    "timeout",
    "timed out",
    "temporarily unavailable",
)

# SQLSTATE classes that never succeed on retry: data exceptions,
# integrity constraint violations, syntax errors and access rule violations.
DEFAULT_PERMANENT_CLASSES = frozenset({"22", "23", "42"})


@dataclass(frozen=True)
class DatabaseErrorPolicy:
    """Code tables deciding how database-origin errors are classified.

    The origin's full code space is open-ended, so the transient set is
    configurable. Use ``extend`` to add codes without losing the defaults.
    """

    not_found_codes: FrozenSet[str] = frozenset({"PGRST116"})
    code_overrides: Dict[str, Tuple[ErrorKind, str]] = field(
        default_factory=lambda: {
            "23505": (ErrorKind.VALIDATION, ERROR_MESSAGES["duplicate"]),
            "42501": (
                ErrorKind.AUTHORIZATION,
                ERROR_MESSAGES["insufficient_permissions"],
            ),
        }
    )
    transient_codes: FrozenSet[str] = DEFAULT_TRANSIENT_CODES
    transient_messages: Tuple[str, ...] = DEFAULT_TRANSIENT_MESSAGES
    permanent_classes: FrozenSet[str] = DEFAULT_PERMANENT_CLASSES

    def is_transient(self, code: Optional[str], message: Optional[str]) -> bool:
        code = code or ""
        if code in self.transient_codes:
            return True
        if code[:2] in self.permanent_classes:
            return False
        lowered = (message or "").lower()
        return any(pattern in lowered for pattern in self.transient_messages)

    def extend(
        self,
        transient_codes: Tuple[str, ...] = (),
        transient_messages: Tuple[str, ...] = (),
        not_found_codes: Tuple[str, ...] = (),
    ) -> "DatabaseErrorPolicy":
        """Return a copy with additional codes/patterns."""
        return replace(
            self,
            transient_codes=self.transient_codes | frozenset(transient_codes),
            transient_messages=self.transient_messages + tuple(transient_messages),
            not_found_codes=self.not_found_codes | frozenset(not_found_codes),
        )


DEFAULT_DATABASE_POLICY = DatabaseErrorPolicy()


@dataclass
class _OriginError:
    code: str
    message: Optional[str]
    details: Any


def _origin_error(raw: Any) -> Optional[_OriginError]:
    """Extract a database-style code/message pair from a mapping or object."""
    if isinstance(raw, Mapping):
        code = raw.get("code")
        if not isinstance(code, str):
            return None
        message = raw.get("message")
        return _OriginError(
            code=code,
            message=message if isinstance(message, str) else None,
            details=raw.get("details"),
        )

    code = getattr(raw, "code", None)
    if not isinstance(code, str):
        return None
    message = getattr(raw, "message", None)
    if not isinstance(message, str):
        message = str(raw) if isinstance(raw, BaseException) else None
    return _OriginError(code=code, message=message or None, details=getattr(raw, "details", None))


def _message_of(raw: Any) -> Optional[str]:
    if isinstance(raw, BaseException):
        return str(raw)
    return None


# Rules: each takes (raw, policy) and returns a NormalizedError or None.


def _match_normalized(raw: Any, policy: DatabaseErrorPolicy) -> Optional[NormalizedError]:
    if isinstance(raw, NormalizedError):
        return raw
    if isinstance(raw, PolarisError):
        normalized = raw.to_normalized()
        if raw.kind == ErrorKind.DATABASE:
            return normalized.model_copy(
                update={"retryable": policy.is_transient(raw.code, raw.message)}
            )
        return normalized
    return None


def _match_validation(raw: Any, policy: DatabaseErrorPolicy) -> Optional[NormalizedError]:
    if isinstance(raw, PydanticValidationError):
        return NormalizedError(
            kind=ErrorKind.VALIDATION,
            message=ERROR_MESSAGES["validation"],
            details=raw.errors(),
            retryable=False,
        )
    return None


def _match_not_found(raw: Any, policy: DatabaseErrorPolicy) -> Optional[NormalizedError]:
    origin = _origin_error(raw)
    if origin is None or origin.code not in policy.not_found_codes:
        return None
    return NormalizedError(
        kind=ErrorKind.NOT_FOUND,
        message=origin.message or ERROR_MESSAGES["not_found"],
        code=origin.code,
        retryable=False,
    )


def _match_database(raw: Any, policy: DatabaseErrorPolicy) -> Optional[NormalizedError]:
    origin = _origin_error(raw)
    if origin is None:
        return None

    override = policy.code_overrides.get(origin.code)
    if override is not None:
        kind, message = override
        return NormalizedError(
            kind=kind, message=message, code=origin.code, retryable=False
        )

    return NormalizedError(
        kind=ErrorKind.DATABASE,
        message=origin.message or ERROR_MESSAGES["database"],
        code=origin.code,
        details=origin.details,
        retryable=policy.is_transient(origin.code, origin.message),
    )


def _match_network(raw: Any, policy: DatabaseErrorPolicy) -> Optional[NormalizedError]:
    if isinstance(raw, (ConnectionError, socket.gaierror)):
        return NormalizedError(
            kind=ErrorKind.NETWORK,
            message=ERROR_MESSAGES["network"],
            retryable=True,
        )
    return None


def _match_timeout(raw: Any, policy: DatabaseErrorPolicy) -> Optional[NormalizedError]:
    message = _message_of(raw)
    if isinstance(raw, (TimeoutError, asyncio.TimeoutError)) or (
        message is not None and "timeout" in message.lower()
    ):
        return NormalizedError(
            kind=ErrorKind.NETWORK,
            message=ERROR_MESSAGES["timeout"],
            retryable=True,
        )
    return None


_MESSAGE_PATTERNS: List[Tuple[Tuple[str, ...], ErrorKind, str, bool]] = [
    (
        ("unauthorized", "unauthenticated", "not authenticated", "authentication"),
        ErrorKind.AUTHENTICATION,
        ERROR_MESSAGES["authentication"],
        False,
    ),
    (
        ("forbidden", "permission denied", "access denied"),
        ErrorKind.AUTHORIZATION,
        ERROR_MESSAGES["authorization"],
        False,
    ),
    (
        ("rate limit", "too many requests"),
        ErrorKind.RATE_LIMIT,
        ERROR_MESSAGES["rate_limit"],
        True,
    ),
]


def _match_message(raw: Any, policy: DatabaseErrorPolicy) -> Optional[NormalizedError]:
    message = _message_of(raw)
    if not message:
        return None
    lowered = message.lower()
    for patterns, kind, user_message, retryable in _MESSAGE_PATTERNS:
        if any(pattern in lowered for pattern in patterns):
            return NormalizedError(kind=kind, message=user_message, retryable=retryable)
    return None


def _match_exception(raw: Any, policy: DatabaseErrorPolicy) -> Optional[NormalizedError]:
    if isinstance(raw, BaseException):
        return NormalizedError(
            kind=ErrorKind.UNKNOWN,
            message=str(raw) or ERROR_MESSAGES["unexpected"],
            retryable=False,
        )
    return None


DECISION_TABLE: List[
    Callable[[Any, DatabaseErrorPolicy], Optional[NormalizedError]]
] = [
    _match_normalized,
    _match_validation,
    _match_not_found,
    _match_database,
    _match_network,
    _match_timeout,
    _match_message,
    _match_exception,
]


def _unknown(raw: Any) -> NormalizedError:
    return NormalizedError(
        kind=ErrorKind.UNKNOWN,
        message=ERROR_MESSAGES["unexpected"],
        details=raw,
        retryable=False,
    )


def classify(
    raw: Any, policy: Optional[DatabaseErrorPolicy] = None
) -> NormalizedError:
    """
    Normalize any failure value into a NormalizedError.

    Never raises: values with no recognizable shape become ``unknown`` with
    the original value kept in ``details``.

    Args:
        raw: The raised exception, rejected value or error payload
        policy: Database code tables; defaults to DEFAULT_DATABASE_POLICY

    Returns:
        NormalizedError for the first matching rule
    """
    policy = policy or DEFAULT_DATABASE_POLICY
    try:
        for rule in DECISION_TABLE:
            result = rule(raw, policy)
            if result is not None:
                return result
    except Exception as e:
        logger.warning(f"Classification failed for {type(raw).__name__}: {e}", exc_info=True)
    return _unknown(raw)
