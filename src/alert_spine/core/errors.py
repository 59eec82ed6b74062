"""
Structured error types for alert-spine.

Every failure the reconciliation engine can surface is an AlertSpineError
subclass carrying a category, a retry flag, structured context and the chained
cause. The retry policy in ``alert_spine.execution.retry`` and the CLI exit
handling both key off these types instead of inspecting messages.

Manifesto:
    - **Typed hierarchy:** one class per failure domain (config, provider,
      evaluation, source)
    - **Explicit retry semantics:** only transient transport failures retry
    - **Rich context:** destination, alert name, URL and HTTP status travel
      with the error into the structured log line
    - **Error chaining:** the original httpx/boto3/yaml exception is kept as
      ``cause``

Architecture:
    ::

        ┌────────────────────────────────────────────────────────────┐
        │                      AlertSpineError                       │
        │   (category, retryable, context, cause)                    │
        ├────────────────────────────────────────────────────────────┤
        │  TransientError          ConfigError        SourceError    │
        │  (retryable=True)        (CONFIG)           (SOURCE)       │
        │       │                      │                  │          │
        │  ProviderTimeoutError   MissingConfigError  AlertFileError │
        │                         InvalidConfigError                 │
        │                         UnknownComponentError              │
        │                                                            │
        │  EvaluationError         ProviderError      InvalidTrans-  │
        │  (EVALUATION)            (PROVIDER)         itionError     │
        │       │                      │              (INTERNAL)     │
        │  AlertNotEvaluatedError  RemoteFetchError                  │
        │                          ApiError                          │
        │                          DryRunFailedError                 │
        └────────────────────────────────────────────────────────────┘

Examples:
    >>> error = ProviderTimeoutError("read timeout")
    >>> error.retryable
    True
    >>> RemoteFetchError("retries exceeded").with_context(destination="datadog").context.destination
    'datadog'

Guardrails:
    ❌ DON'T: raise bare Exception from provider or source code
    ✅ DO: wrap the library exception and pass it as ``cause=``

    ❌ DON'T: mark API rejections (4xx) as retryable
    ✅ DO: let ProviderTimeoutError be the only retried kind during sync

Tags:
    error-handling, exception-hierarchy, retry-logic, alert-spine
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for log routing and CLI reporting."""

    NETWORK = "NETWORK"           # Connection, timeout
    PROVIDER = "PROVIDER"         # Alerting backend rejected or failed a call
    SOURCE = "SOURCE"             # Inventory, group or alert files
    EVALUATION = "EVALUATION"     # Alert definition evaluation
    CONFIG = "CONFIG"             # Missing or invalid settings
    INTERNAL = "INTERNAL"         # Bugs, unexpected state
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Typed fields cover what the engine knows at the failure point; anything
    else goes into ``metadata``. ``to_dict()`` drops unset fields so the result
    can be splatted into a structlog call.

    Attributes:
        destination: Destination name (e.g. ``"datadog"``)
        alert_name: Alert the failing call concerned
        definition: Alert definition path
        source_name: Host/group/alert source type
        url: URL being accessed
        http_status: HTTP status code if applicable
        metadata: Additional key-value pairs
    """

    destination: str | None = None
    alert_name: str | None = None
    definition: str | None = None
    source_name: str | None = None
    url: str | None = None
    http_status: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["destination", "alert_name", "definition", "source_name", "url", "http_status"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class AlertSpineError(Exception):
    """
    Base exception for all alert-spine errors.

    Subclasses set ``default_category`` and ``default_retryable``; both can be
    overridden per instance.

    Args:
        message: Human readable description
        category: Overrides ``default_category``
        retryable: Overrides ``default_retryable``
        context: Structured metadata
        cause: Underlying exception, chained as ``__cause__``
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> AlertSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise RemoteFetchError("retries exceeded").with_context(
                destination="datadog", page=3
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialize for structured logging."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TRANSIENT ERRORS (retryable)
# =============================================================================


class TransientError(AlertSpineError):
    """Temporary failure that is expected to succeed on retry."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class ProviderTimeoutError(TransientError):
    """Connect or read timeout talking to the alerting provider or a source."""


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(AlertSpineError):
    """Configuration is missing or invalid. Never retryable."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class MissingConfigError(ConfigError):
    """A required option is absent."""

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        super().__init__(message or f"Missing required configuration: {key}")


class InvalidConfigError(ConfigError):
    """An option has an unusable value."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


class UnknownComponentError(ConfigError):
    """A configured ``type`` key has no registered implementation."""

    def __init__(self, kind: str, key: str, available: list[str]):
        self.kind = kind
        self.key = key
        self.available = available
        listing = ", ".join(available) if available else "none"
        super().__init__(f"Unknown {kind} '{key}'. Available: {listing}")


# =============================================================================
# SOURCE AND EVALUATION ERRORS
# =============================================================================


class SourceError(AlertSpineError):
    """Failure reading an inventory, group or alert source."""

    default_category = ErrorCategory.SOURCE
    default_retryable = False


class AlertFileError(SourceError):
    """An alert or group file could not be read or parsed."""


class EvaluationError(AlertSpineError):
    """Alert definitions failed to evaluate or never applied."""

    default_category = ErrorCategory.EVALUATION
    default_retryable = False

    def __init__(self, message: str, definitions: list[str] | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.definitions = definitions or []


class AlertNotEvaluatedError(EvaluationError):
    """An alert definition was read before it was evaluated."""

    def __init__(self, definition: str):
        super().__init__(f"Alert definition {definition} has not yet been evaluated")
        self.context.definition = definition


# =============================================================================
# PROVIDER ERRORS
# =============================================================================


class ProviderError(AlertSpineError):
    """The alerting backend rejected a call or returned unusable data."""

    default_category = ErrorCategory.PROVIDER
    default_retryable = False


class ApiError(ProviderError):
    """Non-success response from the provider API."""

    def __init__(self, message: str, status_code: int, body: Any = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.body = body
        self.context.http_status = status_code


class RemoteFetchError(ProviderError):
    """Existing remote alerts could not be fetched after all retries."""


class DryRunFailedError(ProviderError):
    """A dry run accumulated API errors, so the plan is not cleanly applicable."""

    def __init__(self, errors: list[str], destination: str | None = None):
        self.errors = list(errors)
        super().__init__(f"Dry run failed with {len(errors)} API error(s): {', '.join(errors)}")
        self.context.destination = destination


# =============================================================================
# INTERNAL ERRORS
# =============================================================================


class InvalidTransitionError(AlertSpineError):
    """A state machine was driven out of order."""

    default_category = ErrorCategory.INTERNAL


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "AlertSpineError",
    "TransientError",
    "ProviderTimeoutError",
    "ConfigError",
    "MissingConfigError",
    "InvalidConfigError",
    "UnknownComponentError",
    "SourceError",
    "AlertFileError",
    "EvaluationError",
    "AlertNotEvaluatedError",
    "ProviderError",
    "ApiError",
    "RemoteFetchError",
    "DryRunFailedError",
    "InvalidTransitionError",
]
