"""
Configuration constants and settings for the dashboard resilience layer.
"""

import os
from typing import Any, Dict

from .exceptions import ConfigurationError

# Retry configuration
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_MS = 1000

# Circuit breaker defaults
CIRCUIT_BREAKER_FAILURE_THRESHOLD = 5
CIRCUIT_BREAKER_TIMEOUT = 60.0

# One breaker per protected dependency, created once at startup
CIRCUIT_CONFIGS: Dict[str, Dict[str, Any]] = {
    "database": {
        "failure_threshold": 5,
        "recovery_timeout": 60.0,
    },
    "ai_generation": {
        "failure_threshold": 3,
        "recovery_timeout": 30.0,
    },
}

# Error monitoring
MAX_ERROR_HISTORY = 100
RECENT_ERRORS_IN_SUMMARY = 5

# Performance monitoring
SLOW_OPERATION_THRESHOLD_MS = 1000

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_DIR = os.getenv("POLARIS_LOG_DIR")

# User-facing messages
ERROR_MESSAGES = {
    "unexpected": "An unexpected error occurred",
    "validation": "Invalid input data",
    "not_found": "Resource not found",
    "database": "Database operation failed",
    "duplicate": "Duplicate entry",
    "insufficient_permissions": "Insufficient permissions",
    "network": "Network connection failed",
    "timeout": "Request timed out",
    "authentication": "Authentication required",
    "authorization": "Access denied",
    "rate_limit": "Too many requests",
    "circuit_breaker_open": "Service temporarily unavailable",
}


def validate_config() -> None:
    """Validate configuration settings."""
    if DEFAULT_MAX_ATTEMPTS < 1:
        raise ConfigurationError("DEFAULT_MAX_ATTEMPTS", "must be at least 1")

    if DEFAULT_BASE_DELAY_MS < 0:
        raise ConfigurationError("DEFAULT_BASE_DELAY_MS", "must not be negative")

    if MAX_ERROR_HISTORY < 1:
        raise ConfigurationError("MAX_ERROR_HISTORY", "must be positive")

    if SLOW_OPERATION_THRESHOLD_MS < 0:
        raise ConfigurationError("SLOW_OPERATION_THRESHOLD_MS", "must not be negative")

    for service, settings in CIRCUIT_CONFIGS.items():
        if settings.get("failure_threshold", CIRCUIT_BREAKER_FAILURE_THRESHOLD) < 1:
            raise ConfigurationError(
                f"CIRCUIT_CONFIGS[{service}].failure_threshold", "must be positive"
            )
        if settings.get("recovery_timeout", CIRCUIT_BREAKER_TIMEOUT) < 0:
            raise ConfigurationError(
                f"CIRCUIT_CONFIGS[{service}].recovery_timeout", "must not be negative"
            )
