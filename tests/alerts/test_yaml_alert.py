"""Tests for YAML alert definitions and their scope matchers."""

from __future__ import annotations

import pytest

from alert_spine.alerts.yaml_alert import (
    NAME_SUFFIX,
    YamlAlertDefinition,
    excluding_matcher,
    including_matcher,
    match_matcher,
    not_match_matcher,
    render_template,
    scope_option_applies,
)
from alert_spine.core.errors import AlertFileError, AlertNotEvaluatedError
from alert_spine.domain.models import AppliesState, freeze_host

DISK_ALERT = """
name: "%(hostname)s disk usage"
scope: optica
scope_options:
  - matches: {role: "web*"}
    excluding: {environment: [development]}
query: "avg(last_10m):avg:system.disk.in_use{host:%(hostname)s} > 0.9"
message: "Disk almost full on %(hostname)s"
thresholds: {critical: 0.9}
silenced: true
tags: [team:storage]
notify:
  recovery: false
  fallback_groups: [sre]
options:
  notifiers:
    - {type: groups, args: {groups: [storage]}}
    - {type: people, args: {people: [alice]}}
"""

WEB = {"source": "optica", "hostname": "web-1", "role": "web", "environment": "production"}


def _write(tmp_path, text, name="disk.yml"):
    path = tmp_path / name
    path.write_text(text)
    return YamlAlertDefinition(tmp_path, path)


class TestTemplate:
    def test_substitutes_host_attributes(self):
        assert render_template("host %(hostname)s", {"hostname": "web-1"}) == "host web-1"

    def test_unknown_keys_render_empty(self):
        assert render_template("[%(nope)s]", {}) == "[]"

    def test_literal_percent(self):
        assert render_template("100%%", {}) == "100%"


class TestMatchers:
    """Each matcher against one host."""

    def test_matches_glob(self):
        assert match_matcher({"role": "web*"}, WEB)
        assert not match_matcher({"role": "db*"}, WEB)

    def test_matches_requires_key(self):
        assert not match_matcher({"cluster": "*"}, WEB)
        assert not match_matcher({"role": "*"}, {"role": None})

    def test_not_matches(self):
        assert not_match_matcher({"role": "db*"}, WEB)
        assert not not_match_matcher({"role": "web"}, WEB)

    def test_including_list(self):
        assert including_matcher({"environment": ["production", "staging"]}, WEB)
        assert not including_matcher({"environment": ["staging"]}, WEB)

    def test_including_string_is_substring_check(self):
        assert including_matcher({"role": "web,api"}, WEB)

    def test_excluding(self):
        assert excluding_matcher({"environment": ["development"]}, WEB)
        assert not excluding_matcher({"environment": ["production"]}, WEB)

    def test_empty_scope_option_passes(self):
        assert scope_option_applies({}, WEB)

    def test_unknown_matcher_fails(self):
        assert not scope_option_applies({"regex": {"role": "w.*"}}, WEB)


class TestYamlAlertDefinition:
    """Evaluation of a full YAML alert."""

    def test_evaluates_alert_fields(self, tmp_path):
        definition = _write(tmp_path, DISK_ALERT)
        assert definition.evaluate(freeze_host(WEB)) is AppliesState.APPLIES

        alert = definition.alert
        assert alert.name == "web-1 disk usage" + NAME_SUFFIX
        assert alert.query.endswith("{host:web-1} > 0.9")
        assert alert.message == "Disk almost full on web-1"
        assert alert.thresholds == {"critical": 0.9}
        assert alert.silenced == {"*": None}
        assert alert.tags == ("team:storage",)
        assert alert.notify.groups == ("storage",)
        assert alert.notify.people == ("alice",)
        assert alert.notify.fallback_groups == ("sre",)
        assert alert.notify.recovery is False

    def test_filename_is_relative_to_repo(self, tmp_path):
        assert str(_write(tmp_path, DISK_ALERT)) == "disk.yml"

    def test_does_not_apply_to_other_scope(self, tmp_path):
        definition = _write(tmp_path, DISK_ALERT)
        host = freeze_host({**WEB, "source": "aws_rds"})
        assert definition.evaluate(host) is AppliesState.NEVER

    def test_does_not_apply_when_excluded(self, tmp_path):
        definition = _write(tmp_path, DISK_ALERT)
        host = freeze_host({**WEB, "environment": "development"})
        assert definition.evaluate(host) is AppliesState.NEVER

    def test_metric_datadog_query_fallback(self, tmp_path):
        text = "name: x\nscope: optica\nscope_options: [{}]\nmetric: {datadog_query: 'sum:x{*} > 1'}\n"
        definition = _write(tmp_path, text)
        definition.evaluate(freeze_host(WEB))
        assert definition.alert.query == "sum:x{*} > 1"

    def test_missing_name_raises(self, tmp_path):
        definition = _write(tmp_path, "scope: optica\n")
        with pytest.raises(AlertFileError, match="no name"):
            definition.evaluate(freeze_host(WEB))

    def test_invalid_yaml_raises(self, tmp_path):
        definition = _write(tmp_path, "name: [broken\n")
        with pytest.raises(AlertFileError, match="Invalid YAML"):
            definition.evaluate(freeze_host(WEB))

    def test_alert_before_evaluation(self, tmp_path):
        definition = _write(tmp_path, DISK_ALERT)
        assert definition.current is None
        with pytest.raises(AlertNotEvaluatedError):
            definition.alert
        with pytest.raises(AlertNotEvaluatedError):
            definition.applies
