"""
Error context and severity definitions for reported errors.
"""

from datetime import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .models import NormalizedError


class ErrorSeverity(Enum):
    """Error severity levels for prioritization."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """A classified error together with where and when it was observed."""

    error: NormalizedError
    severity: ErrorSeverity
    timestamp: datetime
    context: Optional[str] = None
    original_error: Optional[str] = None
    additional_info: Dict[str, Any] = field(default_factory=dict)

    def to_record(self) -> Dict[str, Any]:
        """Structured log record."""
        return {
            "error": self.error.to_dict(),
            "original_error": self.original_error,
            "timestamp": self.timestamp.isoformat(),
            "context": self.context,
            "severity": self.severity.value,
            **self.additional_info,
        }
