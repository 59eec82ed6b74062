"""Execution primitives: retry policies and cooperative cancellation."""

from alert_spine.execution.cancellation import ShutdownToken, install_signal_handlers
from alert_spine.execution.retry import ExponentialBackoff, RetryContext, RetryStrategy

__all__ = [
    "ExponentialBackoff",
    "RetryContext",
    "RetryStrategy",
    "ShutdownToken",
    "install_signal_handlers",
]
