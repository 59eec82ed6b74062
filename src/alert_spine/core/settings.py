"""Process-level settings for alert-spine.

Settings come from ``ALERT_SPINE_*`` environment variables or a ``.env`` file.
They cover what should not live in the (usually version-controlled) run
configuration: credentials, log format, HTTP timeouts.

Examples:
    >>> import os
    >>> os.environ["ALERT_SPINE_LOG_LEVEL"] = "DEBUG"
    >>> AlertSpineSettings().log_level
    'DEBUG'

Tags:
    settings, configuration, pydantic, environment, alert-spine
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AlertSpineSettings(BaseSettings):
    """Environment-driven settings.

    Fields
    ──────
    log_level       : structlog log level
    log_json        : force JSON (True) or console (False) output; auto when unset
    config_path     : default run configuration file for the CLI
    dry_run_prefix  : name prefix isolating dry-run alerts from production ones
    datadog_api_key : fallback when the destination options omit ``api_key``
    datadog_app_key : fallback when the destination options omit ``app_key``
    http_timeout    : default connect/read timeout (seconds) for HTTP sources
    """

    model_config = SettingsConfigDict(
        env_prefix="ALERT_SPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool | None = None

    # ── Run ──────────────────────────────────────────────────────
    config_path: Path = Field(
        default=Path("/etc/alert-spine/config.yaml"),
        description="Run configuration consumed by `alert-spine run`",
    )
    dry_run_prefix: str = "[dry-run] "

    # ── Providers ────────────────────────────────────────────────
    datadog_api_key: str | None = None
    datadog_app_key: str | None = None
    http_timeout: float = 60.0


@lru_cache(maxsize=1)
def get_settings() -> AlertSpineSettings:
    """Return the process-wide settings (cached)."""
    return AlertSpineSettings()


__all__ = ["AlertSpineSettings", "get_settings"]
