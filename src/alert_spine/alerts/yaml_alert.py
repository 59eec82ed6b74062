"""YAML alert definitions.

The file is a template: host attributes are substituted with ``%(key)s``
(unknown keys render as an empty string) before the text is parsed, so a
literal percent sign is written ``%%``. Example::

    name: "%(hostname)s disk usage"
    scope: optica
    scope_options:
      - matches: {role: "web-*"}
        excluding: {environment: [development]}
    monitor_type: metric alert
    query: "avg(last_10m):avg:system.disk.in_use{host:%(hostname)s} > 0.9"
    message: "Disk almost full on %(hostname)s"
    thresholds: {critical: 0.9}
    notify:
      recovery: false
    options:
      notifiers:
        - {type: groups, args: {groups: [storage]}}
        - {type: people, args: {people: [alice]}}

The definition applies when the host's ``source`` equals ``scope`` and at least
one entry of ``scope_options`` passes all of its matchers. An empty entry
passes; an unknown matcher fails.
"""

from __future__ import annotations

from fnmatch import fnmatchcase
from typing import Any, Mapping

import yaml

from alert_spine.alerts.definition import AlertDefinition
from alert_spine.core.errors import AlertFileError
from alert_spine.domain.models import AlertInstance, AppliesState, HostContext, NotifyPolicy

NAME_SUFFIX = " [alert-spine]"


class _BlankMissing(dict):
    def __missing__(self, key: str) -> str:
        return ""


def render_template(text: str, host: Mapping[str, Any]) -> str:
    """``%``-format ``text`` with host attributes; missing keys become ''."""
    return text % _BlankMissing(host)


def _scope_value(host: Mapping[str, Any], key: str) -> Any:
    value = host.get(key)
    if value is None or value is False:
        return None
    return value


def match_matcher(options: Mapping[str, Any], host: Mapping[str, Any]) -> bool:
    """Every key exists on the host and its value matches the glob."""
    for key, pattern in options.items():
        value = _scope_value(host, key)
        if value is None or not fnmatchcase(str(value), str(pattern)):
            return False
    return True


def not_match_matcher(options: Mapping[str, Any], host: Mapping[str, Any]) -> bool:
    return not match_matcher(options, host)


def including_matcher(options: Mapping[str, Any], host: Mapping[str, Any]) -> bool:
    """Every key exists on the host and its value is one of the listed values."""
    for key, allowed in options.items():
        value = _scope_value(host, key)
        if value is None:
            return False
        if isinstance(allowed, str):
            if str(value) not in allowed:
                return False
        elif value not in (allowed or ()):
            return False
    return True


def excluding_matcher(options: Mapping[str, Any], host: Mapping[str, Any]) -> bool:
    return not including_matcher(options, host)


MATCHERS = {
    "matches": match_matcher,
    "not_matches": not_match_matcher,
    "including": including_matcher,
    "excluding": excluding_matcher,
}


def scope_option_applies(scope_option: Mapping[str, Any], host: Mapping[str, Any]) -> bool:
    """All matchers of one scope option pass (vacuously true when empty)."""
    for matcher, matcher_options in (scope_option or {}).items():
        check = MATCHERS.get(matcher)
        if check is None or not check(matcher_options or {}, host):
            return False
    return True


def _notifiers(data: Mapping[str, Any]) -> tuple[list[str], list[str]]:
    people: list[str] = []
    groups: list[str] = []
    options = data.get("options") or {}
    for notifier in options.get("notifiers") or []:
        args = notifier.get("args") or {}
        if notifier.get("type") == "groups":
            groups.extend(args.get("groups") or [])
        elif notifier.get("type") == "people":
            people.extend(args.get("people") or [])
    return people, groups


class YamlAlertDefinition(AlertDefinition):
    """Alert definition authored as a YAML template."""

    def parse(self, host: HostContext) -> dict[str, Any]:
        try:
            data = yaml.safe_load(render_template(self.text, host))
        except yaml.YAMLError as e:
            raise AlertFileError(f"Invalid YAML in alert {self.filename}: {e}", cause=e) from e
        if not isinstance(data, dict):
            raise AlertFileError(f"Alert {self.filename} must be a mapping")
        if not data.get("name"):
            raise AlertFileError(f"Alert {self.filename} has no name")
        return data

    def applies_to(self, data: Mapping[str, Any], host: Mapping[str, Any]) -> bool:
        if host.get("source") != data.get("scope"):
            return False
        return any(scope_option_applies(option, host) for option in data.get("scope_options") or [])

    def _build(self, host: HostContext) -> tuple[AlertInstance, AppliesState]:
        data = self.parse(host)
        people, groups = _notifiers(data)
        notify = data.get("notify") or {}
        metric = data.get("metric") or {}

        alert = AlertInstance(
            name=f"{data['name']}{NAME_SUFFIX}",
            query=data.get("query") or metric.get("datadog_query") or "",
            message=data.get("message") or "",
            monitor_type=data.get("monitor_type") or "metric alert",
            target=data.get("target") or "datadog",
            notify=NotifyPolicy(
                people=people,
                groups=groups,
                fallback_groups=notify.get("fallback_groups") or (),
                audit=bool(notify.get("audit", False)),
                recovery=bool(notify.get("recovery", True)),
                include_tags=notify.get("include_tags"),
                escalation_message=notify.get("escalation_message"),
                renotify_interval=notify.get("renotify_interval"),
            ),
            evaluation_delay=data.get("evaluation_delay"),
            new_host_delay=data.get("new_host_delay"),
            require_full_window=data.get("require_full_window"),
            timeout_h=data.get("timeout_h", data.get("timeout")),
            thresholds=data.get("thresholds"),
            no_data_timeframe=data.get("no_data_timeframe"),
            notify_no_data=bool(data.get("notify_no_data", False)),
            silenced=data.get("silenced"),
            locked=data.get("locked"),
            tags=data.get("tags") or (),
        )
        applies = AppliesState.APPLIES if self.applies_to(data, host) else AppliesState.NEVER
        return alert, applies
