"""Alerting backends."""

from alert_spine.providers.base import (
    DEFAULT_ALERT_KEY,
    ApiResponse,
    Destination,
    PagingParams,
    ProviderClient,
)

__all__ = [
    "DEFAULT_ALERT_KEY",
    "ApiResponse",
    "Destination",
    "PagingParams",
    "ProviderClient",
]
