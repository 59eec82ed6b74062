"""Tests for run configuration loading and process settings."""

from __future__ import annotations

from pathlib import Path

import pytest

from alert_spine.core.config import ComponentSpec, RunConfig
from alert_spine.core.errors import ConfigError
from alert_spine.core.settings import AlertSpineSettings

SAMPLE = """
alerts_repo_path: /srv/alerts
processes: 4
alert_sources:
  - type: filesystem
    enabled: true
    options:
      alert_types:
        - {path: alerts, extension: "*.yml", kind: yaml}
host_sources:
  - {type: optica, enabled: true, options: {host: optica.local}}
  - {enabled: true}
destinations:
  - {type: datadog, options: {api_key: a, app_key: b}}
"""


class TestRunConfig:
    """RunConfig.from_yaml / from_yaml_file."""

    def test_parses_sample(self):
        config = RunConfig.from_yaml(SAMPLE)
        assert config.alerts_repo_path == Path("/srv/alerts")
        assert config.processes == 4
        assert config.alert_sources[0].type == "filesystem"
        assert config.alert_sources[0].options["alert_types"][0]["kind"] == "yaml"
        assert config.host_sources[1].type is None

    def test_enabled_defaults_to_false(self):
        config = RunConfig.from_yaml(SAMPLE)
        assert config.destinations[0].enabled is False

    def test_empty_document_is_default_config(self):
        config = RunConfig.from_yaml("")
        assert config.destinations == []
        assert config.processes is None

    def test_invalid_yaml_raises_config_error(self):
        with pytest.raises(ConfigError, match="Invalid YAML"):
            RunConfig.from_yaml("destinations: [unclosed")

    def test_non_mapping_raises_config_error(self):
        with pytest.raises(ConfigError, match="mapping"):
            RunConfig.from_yaml("- a\n- b\n")

    def test_unknown_top_level_key_rejected(self):
        with pytest.raises(ConfigError, match="Invalid run configuration"):
            RunConfig.from_yaml("destinatons: []")

    def test_negative_processes_rejected(self):
        with pytest.raises(ConfigError):
            RunConfig.from_yaml("processes: -1")

    def test_relative_repo_path_resolved_against_file(self, tmp_path):
        config_file = tmp_path / "conf" / "alert-spine.yml"
        config_file.parent.mkdir()
        config_file.write_text("alerts_repo_path: ../repo\n")
        config = RunConfig.from_yaml_file(config_file)
        assert config.alerts_repo_path == (tmp_path / "repo").resolve()

    def test_missing_file_raises_config_error(self, tmp_path):
        with pytest.raises(ConfigError, match="Cannot read"):
            RunConfig.from_yaml_file(tmp_path / "nope.yml")

    def test_resolve_path(self):
        config = RunConfig(alerts_repo_path=Path("/srv/alerts"))
        assert config.resolve_path("groups") == Path("/srv/alerts/groups")
        assert config.resolve_path("/etc/groups") == Path("/etc/groups")


class TestComponentSpec:
    def test_extra_keys_rejected(self):
        with pytest.raises(ValueError):
            ComponentSpec.model_validate({"type": "optica", "enable": True})


class TestSettings:
    """AlertSpineSettings reads ALERT_SPINE_* variables."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("ALERT_SPINE_DRY_RUN_PREFIX", raising=False)
        settings = AlertSpineSettings(_env_file=None)
        assert settings.dry_run_prefix == "[dry-run] "
        assert settings.http_timeout == 60.0

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("ALERT_SPINE_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("ALERT_SPINE_DATADOG_API_KEY", "secret")
        settings = AlertSpineSettings(_env_file=None)
        assert settings.log_level == "DEBUG"
        assert settings.datadog_api_key == "secret"
