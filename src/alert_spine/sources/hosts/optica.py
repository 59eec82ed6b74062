"""Optica inventory: one host record per node.

Optica serves its full node inventory as JSON on ``GET /``::

    {"nodes": {"10.0.0.1": {"hostname": "web-1", "role": "web",
                            "environment": "production",
                            "ownership": {"people": [...], "groups": [...]}}}}
"""

from __future__ import annotations

from typing import Any

import httpx

from alert_spine.core.errors import MissingConfigError, ProviderTimeoutError, SourceError
from alert_spine.core.logging import get_logger
from alert_spine.domain.models import HostContext, freeze_host
from alert_spine.framework.registry import ComponentContext, host_sources

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 60.0


class OpticaClient:
    """Fetches the Optica node map once per instance."""

    def __init__(
        self,
        options: dict[str, Any],
        context: ComponentContext | None = None,
        http_client: httpx.Client | None = None,
    ):
        if not options.get("host"):
            raise MissingConfigError("host", "missing host for optica source")
        self.host = options["host"]
        self.port = options.get("port", 80)
        timeout = DEFAULT_TIMEOUT
        if context is not None and context.settings is not None:
            timeout = context.settings.http_timeout
        self.timeout = options.get("timeout", timeout)
        self._http_client = http_client
        self._data: dict[str, Any] | None = None

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}/"

    def nodes(self) -> dict[str, dict[str, Any]]:
        if self._data is None:
            self._data = self._fetch()
        return self._data.get("nodes") or {}

    def _fetch(self) -> dict[str, Any]:
        try:
            if self._http_client is not None:
                response = self._http_client.get(self.url)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.get(self.url)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(f"Timed out reading optica at {self.url}", cause=e).with_context(
                source_name="optica", url=self.url
            ) from e
        except httpx.HTTPError as e:
            raise SourceError(f"Failed to read optica at {self.url}: {e}", cause=e).with_context(
                source_name="optica", url=self.url
            ) from e
        except ValueError as e:
            raise SourceError(f"Optica at {self.url} returned invalid JSON", cause=e) from e


def node_ownership(node: dict[str, Any]) -> dict[str, Any]:
    return node.get("ownership") or {}


@host_sources.register("optica")
class OpticaHostSource:
    """Options: ``host`` (required), ``port`` (80), ``timeout``."""

    def __init__(
        self,
        options: dict[str, Any],
        context: ComponentContext | None = None,
        http_client: httpx.Client | None = None,
    ):
        self.client = OpticaClient(options, context, http_client)

    def list_hosts(self) -> list[HostContext]:
        hosts = []
        for node in self.client.nodes().values():
            ownership = node_ownership(node)
            hosts.append(
                freeze_host(
                    {
                        "source": "optica",
                        "hostname": node.get("hostname"),
                        "role": node.get("role"),
                        "environment": node.get("environment"),
                        "owners": list(ownership.get("people") or []),
                        "owner_groups": list(ownership.get("groups") or []),
                    }
                )
            )
        return hosts


__all__ = ["OpticaClient", "OpticaHostSource"]
