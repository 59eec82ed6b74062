"""Run configuration: which sources feed the engine and which destinations it syncs.

The configuration is a YAML document validated with pydantic::

    alerts_repo_path: /srv/alerts
    processes: 4
    alert_sources:
      - type: filesystem
        enabled: true
        options:
          alert_types:
            - {path: alerts, extension: "*.yml", kind: yaml}
    group_sources:
      - {type: filesystem, enabled: true, options: {paths: [groups]}}
    host_sources:
      - {type: optica, enabled: true, options: {host: optica.example.com}}
    destinations:
      - {type: datadog, enabled: true, options: {api_key: ..., app_key: ...}}

Every source/destination entry is a ``ComponentSpec``. ``type`` is optional
at parse time so that the loaders can skip (and warn about) an untyped entry
instead of rejecting the whole file; ``enabled`` defaults to false.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from alert_spine.core.errors import ConfigError


class ComponentSpec(BaseModel):
    """One pluggable source or destination."""

    model_config = ConfigDict(extra="forbid")

    type: str | None = Field(default=None, description="Registry key, e.g. 'optica' or 'datadog'")
    enabled: bool = Field(default=False, description="Disabled entries are skipped")
    options: dict[str, Any] = Field(default_factory=dict, description="Passed to the component factory")


class RunConfig(BaseModel):
    """Top-level run configuration."""

    model_config = ConfigDict(extra="forbid")

    alerts_repo_path: Path = Field(default=Path("."), description="Root of the alerts repository")
    processes: int | None = Field(
        default=None, ge=0, description="Evaluation parallelism; 0 or unset evaluates in-line"
    )
    alert_sources: list[ComponentSpec] = Field(default_factory=list)
    group_sources: list[ComponentSpec] = Field(default_factory=list)
    host_sources: list[ComponentSpec] = Field(default_factory=list)
    destinations: list[ComponentSpec] = Field(default_factory=list)

    def resolve_path(self, path: str | Path) -> Path:
        """Resolve ``path`` against the alerts repository unless absolute."""
        candidate = Path(path).expanduser()
        if candidate.is_absolute():
            return candidate
        return (self.alerts_repo_path / candidate).resolve()

    @classmethod
    def from_yaml(cls, yaml_content: str) -> RunConfig:
        """Parse and validate YAML content.

        Raises:
            ConfigError: If YAML is invalid or doesn't match the schema.
        """
        try:
            data = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}", cause=e) from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"Expected a mapping at the top level, got {type(data).__name__}")

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid run configuration: {e}", cause=e) from e

    @classmethod
    def from_yaml_file(cls, path: str | Path) -> RunConfig:
        """Load and validate a configuration file.

        A relative ``alerts_repo_path`` is resolved against the file's directory.
        """
        config_path = Path(path)
        try:
            content = config_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot read configuration file {config_path}: {e}", cause=e) from e

        config = cls.from_yaml(content)
        if not config.alerts_repo_path.is_absolute():
            config.alerts_repo_path = (config_path.parent / config.alerts_repo_path).resolve()
        return config


__all__ = ["ComponentSpec", "RunConfig"]
