"""Datadog monitors API client and the ``datadog`` destination factory.

Endpoints used (all under ``/api/v1``)::

    GET    /monitor?page=N&page_size=M       paged listing
    GET    /monitor?id_offset=N&page_size=M  listing of ids > N, ascending
    POST   /monitor                          create
    PUT    /monitor/{id}                     update
    DELETE /monitor/{id}                     delete
    POST   /monitor/validate                 validate without creating
    POST   /monitor/{id}/unmute              unmute all scopes
"""

from __future__ import annotations

from typing import Any

import httpx

from alert_spine.core.errors import (
    ApiError,
    InvalidConfigError,
    MissingConfigError,
    ProviderTimeoutError,
)
from alert_spine.core.logging import get_logger
from alert_spine.framework.registry import ComponentContext, destinations
from alert_spine.providers.base import (
    DEFAULT_ALERT_KEY,
    TRANSPORT_FAILURE,
    ApiResponse,
    Destination,
    PagingParams,
)

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.datadoghq.com"
DEFAULT_API_TIMEOUT = 15.0
FETCH_STRATEGIES = ("paged", "id_range")


class DatadogClient:
    """Thin wrapper over one shared ``httpx.Client``.

    Non-2xx responses are returned, not raised; the engine classifies them.
    Timeouts raise ``ProviderTimeoutError`` so the retry policy can see them,
    and any other transport failure comes back as status ``-1``.
    """

    def __init__(
        self,
        api_key: str,
        app_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_API_TIMEOUT,
        http_client: httpx.Client | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._http = http_client or httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
        )
        self._headers = {
            "DD-API-KEY": api_key,
            "DD-APPLICATION-KEY": app_key,
            "Accept": "application/json",
        }

    def close(self) -> None:
        self._http.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> ApiResponse:
        url = f"{self.base_url}/api/v1{path}"
        try:
            response = self._http.request(method, url, headers=self._headers, **kwargs)
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(f"{method} {path} timed out", cause=e).with_context(
                destination="datadog", url=url
            ) from e
        except httpx.TransportError as e:
            logger.warning("datadog_transport_error", method=method, path=path, error=str(e))
            return ApiResponse(TRANSPORT_FAILURE, str(e))

        try:
            body = response.json() if response.content else None
        except ValueError:
            body = response.text
        return ApiResponse(response.status_code, body)

    def fetch_page(self, params: PagingParams) -> ApiResponse:
        query: dict[str, Any] = {"page_size": params.page_size}
        if params.id_min is not None:
            query["id_offset"] = params.id_min - 1
        else:
            query["page"] = params.page or 0
        response = self._request("GET", "/monitor", params=query)
        if response.ok and params.id_max is not None and isinstance(response.body, list):
            body = [m for m in response.body if m.get("id", 0) <= params.id_max]
            return ApiResponse(response.status_code, body)
        return response

    def id_bounds(self) -> tuple[int, int] | None:
        lowest = self._search_edge("asc")
        if lowest is None:
            return None
        highest = self._search_edge("desc")
        if highest is None:
            return None
        return lowest, highest

    def _search_edge(self, order: str) -> int | None:
        response = self._request(
            "GET", "/monitor/search", params={"sort": f"id,{order}", "per_page": 1, "page": 0}
        )
        if not response.ok or not isinstance(response.body, dict):
            raise ApiError(
                f"Searching monitors returned {response.status_code}",
                response.status_code,
                response.body,
            ).with_context(destination="datadog")
        monitors = response.body.get("monitors") or []
        return monitors[0]["id"] if monitors else None

    def create(self, monitor_type: str, query: str, payload: dict[str, Any]) -> ApiResponse:
        return self._request("POST", "/monitor", json={"type": monitor_type, "query": query, **payload})

    def update(self, alert_id: int, query: str, payload: dict[str, Any]) -> ApiResponse:
        return self._request("PUT", f"/monitor/{alert_id}", json={"query": query, **payload})

    def delete(self, alert_id: int) -> ApiResponse:
        return self._request("DELETE", f"/monitor/{alert_id}")

    def validate(self, monitor_type: str, query: str, payload: dict[str, Any]) -> ApiResponse:
        return self._request(
            "POST", "/monitor/validate", json={"type": monitor_type, "query": query, **payload}
        )

    def unmute(self, alert_id: int) -> ApiResponse:
        return self._request("POST", f"/monitor/{alert_id}/unmute", json={"all_scopes": True})


def _int_option(options: dict[str, Any], key: str, default: int | None) -> int | None:
    value = options.get(key, default)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise InvalidConfigError(key, value) from e


@destinations.register("datadog")
def create_datadog_destination(
    options: dict[str, Any],
    context: ComponentContext | None = None,
    http_client: httpx.Client | None = None,
) -> Destination:
    """Build the ``datadog`` destination from its configured options."""
    settings = context.settings if context is not None else None
    api_key = options.get("api_key") or (settings.datadog_api_key if settings else None)
    app_key = options.get("app_key") or (settings.datadog_app_key if settings else None)
    if not api_key:
        raise MissingConfigError("api_key", "datadog destination requires api_key")
    if not app_key:
        raise MissingConfigError("app_key", "datadog destination requires app_key")

    fetch_strategy = options.get("fetch_strategy", "paged")
    if fetch_strategy not in FETCH_STRATEGIES:
        raise InvalidConfigError(
            "fetch_strategy", fetch_strategy, f"fetch_strategy must be one of {', '.join(FETCH_STRATEGIES)}"
        )

    client = DatadogClient(
        api_key,
        app_key,
        base_url=options.get("base_url", DEFAULT_BASE_URL),
        timeout=float(options.get("api_timeout", DEFAULT_API_TIMEOUT)),
        http_client=http_client,
    )
    destination = Destination(
        name="datadog",
        client=client,
        alert_key=options.get("alert_key", DEFAULT_ALERT_KEY),
        concurrency=_int_option(options, "concurrency", 10) or 10,
        retries=_int_option(options, "retries", 3) or 0,
        page_size=_int_option(options, "page_size", 1000) or 1000,
        max_mute_minutes=_int_option(options, "max_mute_minutes", None),
        fetch_strategy=fetch_strategy,
        chunk_size=_int_option(options, "chunk_size", 1000) or 1000,
    )
    logger.info(
        "datadog_destination_initialized",
        base_url=client.base_url,
        concurrency=destination.concurrency,
        fetch_strategy=fetch_strategy,
    )
    return destination


__all__ = ["DatadogClient", "create_datadog_destination"]
