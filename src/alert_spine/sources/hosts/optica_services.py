"""Optica services: one record per service, aggregated over the nodes providing
(nerve) and consuming (synapse) it."""

from __future__ import annotations

from typing import Any

import httpx

from alert_spine.domain.models import HostContext, freeze_host
from alert_spine.framework.registry import ComponentContext, host_sources
from alert_spine.sources.hosts.optica import OpticaClient, node_ownership


@host_sources.register("optica_services")
class OpticaServicesHostSource:
    """Options: ``host``, ``port``, ``timeout`` and ``environments`` (all when empty)."""

    def __init__(
        self,
        options: dict[str, Any],
        context: ComponentContext | None = None,
        http_client: httpx.Client | None = None,
    ):
        self.client = OpticaClient(options, context, http_client)
        self.environments = list(options.get("environments") or [])

    def list_hosts(self) -> list[HostContext]:
        services: dict[str, dict[str, Any]] = {}

        def service_record(name: str) -> dict[str, Any]:
            if name not in services:
                services[name] = {
                    "source": "optica_services",
                    "service": name,
                    "owners": set(),
                    "owner_groups": set(),
                    "consumer_roles": set(),
                    "consumer_machine_count": 0,
                    "provider_machine_count": 0,
                }
            return services[name]

        for node in self.client.nodes().values():
            if self.environments and node.get("environment") not in self.environments:
                continue
            ownership = node_ownership(node)

            for service in node.get("nerve_services") or []:
                record = service_record(service)
                record["provider_machine_count"] += 1
                record["owners"].update(ownership.get("people") or [])
                record["owner_groups"].update(ownership.get("groups") or [])

            for service in node.get("synapse_services") or []:
                record = service_record(service)
                record["consumer_roles"].add(node.get("role"))
                record["consumer_machine_count"] += 1

        hosts = []
        for record in services.values():
            for key in ("owners", "owner_groups", "consumer_roles"):
                record[key] = sorted(v for v in record[key] if v is not None)
            hosts.append(freeze_host(record))
        return hosts


__all__ = ["OpticaServicesHostSource"]
