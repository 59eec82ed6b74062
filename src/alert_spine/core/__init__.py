"""Core primitives: errors, logging, settings and run configuration."""

from alert_spine.core.errors import (
    AlertSpineError,
    ConfigError,
    ErrorCategory,
    ErrorContext,
    TransientError,
)
from alert_spine.core.logging import configure_logging, get_logger

__all__ = [
    "AlertSpineError",
    "ConfigError",
    "ErrorCategory",
    "ErrorContext",
    "TransientError",
    "configure_logging",
    "get_logger",
]
