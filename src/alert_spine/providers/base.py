"""
Provider client protocol and the destination record built from configuration.

Concrete clients live beside this module (``datadog.py``). The engine only
ever talks to a ``ProviderClient``; a ``Destination`` bundles one client with
the sync settings the engine needs for that backend.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

DEFAULT_ALERT_KEY = "This alert was created via the alerts framework"

TRANSPORT_FAILURE = -1


@dataclass(frozen=True)
class ApiResponse:
    """Status and decoded body of one provider call.

    ``status_code`` is ``-1`` when the request never produced a response.
    """

    status_code: int
    body: Any = None

    @property
    def ok(self) -> bool:
        return self.status_code == 200

    @property
    def is_client_error(self) -> bool:
        return self.status_code == 400

    @property
    def is_unknown_error(self) -> bool:
        return self.status_code > 400 or self.status_code == TRANSPORT_FAILURE


@dataclass(frozen=True)
class PagingParams:
    """One slice of the remote alert listing.

    Paged fetches set ``page``; id-range fetches set ``id_min``/``id_max``.
    """

    page: int | None = None
    page_size: int = 1000
    id_min: int | None = None
    id_max: int | None = None


@runtime_checkable
class ProviderClient(Protocol):
    """Stateless operations against an alerting backend.

    Implementations must be safe to call from several threads at once and
    raise ``ProviderTimeoutError`` on connect/read timeouts.
    """

    def fetch_page(self, params: PagingParams) -> ApiResponse:
        """List one page (or id chunk) of existing alerts."""
        ...

    def id_bounds(self) -> tuple[int, int] | None:
        """Smallest and largest existing alert id, or None when there are none.

        A failed lookup raises ``ApiError`` (or ``ProviderTimeoutError``); it is
        never reported as an empty listing.
        """
        ...

    def create(self, monitor_type: str, query: str, payload: dict[str, Any]) -> ApiResponse: ...

    def update(self, alert_id: int, query: str, payload: dict[str, Any]) -> ApiResponse: ...

    def delete(self, alert_id: int) -> ApiResponse: ...

    def validate(self, monitor_type: str, query: str, payload: dict[str, Any]) -> ApiResponse: ...

    def unmute(self, alert_id: int) -> ApiResponse: ...


@dataclass
class Destination:
    """A configured backend: its client plus the engine settings for it.

    Attributes:
        name: Matched against ``AlertInstance.target``
        client: Provider client
        alert_key: Managed-alert marker embedded in every message
        concurrency: Worker count for fetch and create/update
        retries: Fetch retries per page and sync retries per call
        retry_base_delay: First backoff delay in seconds
        page_size: Records per page for paged fetches
        max_mute_minutes: Remote silences ending further out than this are
            ignored when deciding whether to unmute
        fetch_strategy: ``paged`` or ``id_range``
        chunk_size: Width of one id range for ``id_range`` fetches
    """

    name: str
    client: ProviderClient
    alert_key: str = DEFAULT_ALERT_KEY
    concurrency: int = 10
    retries: int = 3
    retry_base_delay: float = 1.0
    page_size: int = 1000
    max_mute_minutes: int | None = None
    fetch_strategy: str = "paged"
    chunk_size: int = 1000

    def close(self) -> None:
        close = getattr(self.client, "close", None)
        if close is not None:
            close()


__all__ = [
    "DEFAULT_ALERT_KEY",
    "TRANSPORT_FAILURE",
    "ApiResponse",
    "PagingParams",
    "ProviderClient",
    "Destination",
]
