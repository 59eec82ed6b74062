"""Python-script alert definitions.

A script alert is a ``.py`` file executed once per host with three names
injected into its module namespace:

- ``host``: the read-only ``HostContext``
- ``alert``: an ``AlertBuilder`` the script fills in
- ``is_work_hour``: see ``alert_spine.alerts.work_hours``

Example::

    alert.name = f"{host['role']} 5xx rate"
    alert.applies = host["source"] == "optica" and host["role"].startswith("api")
    alert.query = f"sum(last_5m):sum:http.5xx{{role:{host['role']}}} > 50"
    alert.message = "Elevated 5xx responses"
    alert.notify.groups = host["owner_groups"]
    alert.notify.fallback_groups = ["sre"]

Assigning a field the builder does not know raises ``AttributeError``.
"""

from __future__ import annotations

import importlib.util
from typing import Any

from alert_spine.alerts.definition import AlertDefinition
from alert_spine.alerts.work_hours import is_work_hour
from alert_spine.core.errors import AlertFileError
from alert_spine.domain.models import AlertInstance, AppliesState, HostContext, NotifyPolicy


class _StrictBuilder:
    _defaults: dict[str, Any] = {}

    def __init__(self) -> None:
        for key, value in self._defaults.items():
            object.__setattr__(self, key, list(value) if isinstance(value, list) else value)

    def __setattr__(self, key: str, value: Any) -> None:
        if key not in self._defaults:
            raise AttributeError(f"No such alerts field '{key}'")
        object.__setattr__(self, key, value)


class NotifyBuilder(_StrictBuilder):
    _defaults = {
        "people": [],
        "groups": [],
        "fallback_groups": [],
        "audit": False,
        "recovery": True,
        "include_tags": None,
        "escalation_message": None,
        "renotify_interval": None,
    }

    def build(self) -> NotifyPolicy:
        return NotifyPolicy(**{key: getattr(self, key) for key in self._defaults})


class AlertBuilder(_StrictBuilder):
    _defaults = {
        "name": "",
        "query": "",
        "message": "",
        "monitor_type": "metric alert",
        "target": "datadog",
        "applies": False,
        "evaluation_delay": None,
        "new_host_delay": None,
        "require_full_window": None,
        "timeout_h": None,
        "thresholds": None,
        "no_data_timeframe": None,
        "notify_no_data": False,
        "silenced": False,
        "locked": None,
        "tags": [],
    }

    def __init__(self) -> None:
        super().__init__()
        object.__setattr__(self, "notify", NotifyBuilder())

    def build(self) -> tuple[AlertInstance, AppliesState]:
        fields = {key: getattr(self, key) for key in self._defaults if key != "applies"}
        return AlertInstance(notify=self.notify.build(), **fields), AppliesState.coerce(self.applies)


class ScriptAlertDefinition(AlertDefinition):
    """Alert definition authored as a Python script."""

    def _build(self, host: HostContext) -> tuple[AlertInstance, AppliesState]:
        spec = importlib.util.spec_from_file_location(f"_alert_{self.path.stem}", self.path)
        if spec is None or spec.loader is None:
            raise AlertFileError(f"Cannot load alert script {self.filename}")

        builder = AlertBuilder()
        module = importlib.util.module_from_spec(spec)
        module.host = host
        module.alert = builder
        module.is_work_hour = is_work_hour
        spec.loader.exec_module(module)

        if not builder.name:
            raise AlertFileError(f"Alert script {self.filename} did not set alert.name")
        return builder.build()
