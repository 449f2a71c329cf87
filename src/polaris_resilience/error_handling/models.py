"""
Value types shared by the classifier, retry engine and safe wrappers.
"""

from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_core import to_jsonable_python

from ..config import DEFAULT_BASE_DELAY_MS, DEFAULT_MAX_ATTEMPTS
from ..exceptions import ErrorKind

T = TypeVar("T")


class NormalizedError(BaseModel):
    """Taxonomy-conformant error record produced by classification.

    ``message`` is always safe to show an end user. ``code`` and ``details``
    are diagnostics and belong in logs, not in UI.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: ErrorKind
    message: str
    code: Optional[str] = None
    details: Optional[Any] = None
    retryable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict for returning across a process boundary."""
        data = self.model_dump(mode="json", exclude={"details"})
        data["details"] = to_jsonable_python(self.details, fallback=repr)
        return data


class RetryPolicy(BaseModel):
    """Retry configuration: attempt budget and exponential backoff base."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(
        DEFAULT_MAX_ATTEMPTS, ge=1, description="Total attempts including the first"
    )
    base_delay_ms: int = Field(
        DEFAULT_BASE_DELAY_MS, ge=0, description="Wait before the first retry"
    )

    def delay_ms(self, attempt: int) -> int:
        """Delay before ``attempt`` (1-indexed, the first retry is attempt 2)."""
        if attempt < 2:
            return 0
        return self.base_delay_ms * 2 ** (attempt - 2)


class Result(BaseModel, Generic[T]):
    """Tagged outcome of a result-typed call: either ``data`` or ``error``."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    success: bool
    data: Optional[T] = None
    error: Optional[NormalizedError] = None

    @model_validator(mode="after")
    def check_tag(self) -> "Result":
        if self.success and self.error is not None:
            raise ValueError("successful result cannot carry an error")
        if not self.success and self.error is None:
            raise ValueError("failed result requires an error")
        return self

    @classmethod
    def ok(cls, data: Any) -> "Result":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: NormalizedError) -> "Result":
        return cls(success=False, error=error)
