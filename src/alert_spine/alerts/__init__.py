"""Alert catalog: definition languages and the sources that read them."""

from alert_spine.alerts.definition import AlertDefinition
from alert_spine.alerts.script_alert import ScriptAlertDefinition
from alert_spine.alerts.yaml_alert import YamlAlertDefinition

__all__ = ["AlertDefinition", "ScriptAlertDefinition", "YamlAlertDefinition"]
