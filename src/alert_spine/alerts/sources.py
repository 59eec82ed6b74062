"""Alert sources: where alert definitions come from."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from alert_spine.alerts.definition import AlertDefinition
from alert_spine.alerts.script_alert import ScriptAlertDefinition
from alert_spine.alerts.yaml_alert import YamlAlertDefinition
from alert_spine.core.errors import InvalidConfigError, MissingConfigError
from alert_spine.core.logging import get_logger
from alert_spine.framework.registry import ComponentContext, alert_sources

logger = get_logger(__name__)

DEFINITION_KINDS: dict[str, type[AlertDefinition]] = {
    "yaml": YamlAlertDefinition,
    "script": ScriptAlertDefinition,
}


@dataclass
class AlertSourceResult:
    alerts: list[AlertDefinition] = field(default_factory=list)
    failed: int = 0


@alert_sources.register("filesystem")
class FilesystemAlertSource:
    """Reads definition files matching a glob under one or more directories.

    Options:
        alert_types: list of ``{path, extension, kind}``; ``kind`` is ``yaml``
            or ``script``, ``extension`` a glob such as ``*.yml``.
    """

    def __init__(self, options: dict[str, Any], context: ComponentContext | None = None):
        self.context = context or ComponentContext()
        alert_types = options.get("alert_types")
        if not alert_types:
            raise MissingConfigError("alert_types", "missing alert_types for loading alerts from filesystem")

        for alert_type in alert_types:
            for required in ("path", "extension", "kind"):
                if not alert_type.get(required):
                    raise MissingConfigError(
                        required, f"missing {required} for loading alerts from filesystem"
                    )
            if alert_type["kind"] not in DEFINITION_KINDS:
                raise InvalidConfigError(
                    "kind",
                    alert_type["kind"],
                    f"unknown alert kind {alert_type['kind']!r}; expected one of {sorted(DEFINITION_KINDS)}",
                )
        self.alert_types = alert_types

    def list_alerts(self) -> AlertSourceResult:
        result = AlertSourceResult()

        for alert_type in self.alert_types:
            path = self.context.resolve_path(alert_type["path"])
            if not path.is_dir():
                logger.warning("alert_directory_missing", path=str(path))
                continue

            definition_cls = DEFINITION_KINDS[alert_type["kind"]]
            read = 0
            for alert_file in sorted(path.glob(alert_type["extension"])):
                if self.context.shutdown.requested:
                    break
                try:
                    definition = definition_cls(path, alert_file)
                except (OSError, UnicodeDecodeError) as e:
                    logger.warning("alert_file_unreadable", file=str(alert_file), error=str(e))
                    result.failed += 1
                else:
                    result.alerts.append(definition)
                    read += 1

            logger.info("alert_files_read", path=str(path), count=read)

        return result


__all__ = ["AlertSourceResult", "FilesystemAlertSource", "DEFINITION_KINDS"]
