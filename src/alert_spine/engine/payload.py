"""Rendering of the message and request payload sent for one desired alert.

The reconciler compares remote state against exactly what these functions
produce, so both the sync executor and the diff go through here.
"""

from __future__ import annotations

from typing import Any

from alert_spine.domain.models import AlertInstance, DesiredAlert


def normalize_monitor_type(monitor_type: str | None) -> str:
    """``query alert`` and ``metric alert`` are the same monitor type remotely."""
    if monitor_type == "query alert":
        return "metric alert"
    return monitor_type or ""


class MessageRenderer:
    """Builds the alert message: body, managed marker, then recipient mentions."""

    def __init__(self, alert_key: str):
        self.alert_key = alert_key

    def mentions(self, desired: DesiredAlert) -> str:
        mentions = " ".join(f"@{person}" for person in sorted(desired.recipients))
        if not desired.alert.notify.recovery:
            mentions = "{{^is_recovery}}" + mentions + "{{/is_recovery}}"
        return mentions

    def render(self, desired: DesiredAlert) -> str:
        return "\n".join([desired.alert.message, self.alert_key, self.mentions(desired)])


def build_options(alert: AlertInstance) -> dict[str, Any]:
    options: dict[str, Any] = {
        "notify_audit": alert.notify.audit,
        "notify_no_data": alert.notify_no_data,
        "no_data_timeframe": alert.no_data_timeframe,
        "silenced": dict(alert.silenced),
        "timeout_h": alert.timeout_h,
    }
    optional = {
        "include_tags": alert.notify.include_tags,
        "evaluation_delay": alert.evaluation_delay,
        "new_host_delay": alert.new_host_delay,
        "require_full_window": alert.require_full_window,
        "thresholds": dict(alert.thresholds) if alert.thresholds is not None else None,
        "locked": alert.locked,
        "renotify_interval": alert.notify.renotify_interval,
        "escalation_message": alert.notify.escalation_message,
    }
    options.update({key: value for key, value in optional.items() if value is not None})
    return options


def build_payload(alert: AlertInstance, message: str) -> dict[str, Any]:
    """Request body minus ``type``/``query``, which the client adds per call."""
    return {
        "name": alert.name,
        "message": message,
        "options": build_options(alert),
        "tags": list(alert.tags),
    }


__all__ = ["normalize_monitor_type", "MessageRenderer", "build_options", "build_payload"]
