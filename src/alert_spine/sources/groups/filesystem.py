"""Notification groups read from YAML/JSON files.

Each file describes one group::

    name: storage
    people: [alice, bob]

or an alias of another group::

    name: storage-oncall
    alias_for: storage

Aliases resolve after every file is read; an alias pointing at an unknown
group is skipped with a warning.
"""

from __future__ import annotations

from typing import Any

import yaml

from alert_spine.core.errors import MissingConfigError
from alert_spine.core.logging import get_logger
from alert_spine.framework.registry import ComponentContext, group_sources

logger = get_logger(__name__)

GROUP_FILE_PATTERNS = ("*.json", "*.yml", "*.yaml")


@group_sources.register("filesystem")
class FilesystemGroupSource:
    """Options: ``paths``, directories holding one file per group."""

    def __init__(self, options: dict[str, Any], context: ComponentContext | None = None):
        self.context = context or ComponentContext()
        if not options.get("paths"):
            raise MissingConfigError("paths", "missing paths for loading groups from filesystem")
        self.paths = [self.context.resolve_path(p) for p in options["paths"]]

    def _group_files(self) -> list:
        files = []
        for path in self.paths:
            if not path.is_dir():
                logger.warning("group_directory_missing", path=str(path))
                continue
            for pattern in GROUP_FILE_PATTERNS:
                files.extend(path.glob(pattern))
        return sorted(files)

    def list_groups(self) -> dict[str, list[str]]:
        groups: dict[str, list[str]] = {}
        aliases: dict[str, str] = {}

        for group_file in self._group_files():
            try:
                # JSON is a subset of YAML
                group = yaml.safe_load(group_file.read_text(encoding="utf-8"))
            except yaml.YAMLError as e:
                logger.error("group_file_syntax_error", file=str(group_file), error=str(e))
                continue
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("group_file_unreadable", file=str(group_file), error=str(e))
                continue

            if not isinstance(group, dict) or not group.get("name"):
                logger.warning("group_file_invalid", file=str(group_file))
                continue

            if group.get("alias_for"):
                aliases[group["name"]] = group["alias_for"]
            else:
                groups[group["name"]] = list(group.get("people") or [])

        for name, target in aliases.items():
            if target not in groups:
                logger.warning("group_alias_unresolved", group=name, alias_for=target)
                continue
            groups[name] = list(groups[target])

        return groups


__all__ = ["FilesystemGroupSource"]
