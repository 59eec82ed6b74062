"""
Shared pytest fixtures for alert-spine tests.

This module provides:
- Registry snapshot/restore so tests can register throwaway components
- A clean metrics registry per test
- Sample hosts and a fake provider client
"""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest

from alert_spine.domain.models import HostContext, freeze_host
from alert_spine.framework import registry as registry_module
from alert_spine.observability.metrics import get_metrics_registry
from tests._support.fakes import FakeProviderClient, make_destination

REGISTRIES = (
    registry_module.host_sources,
    registry_module.group_sources,
    registry_module.alert_sources,
    registry_module.destinations,
)


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark every test without an explicit marker as a unit test."""
    for item in items:
        if not any(True for _ in item.iter_markers()):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_registries() -> Generator[None, None, None]:
    """
    Snapshot the component registries around each test.

    Built-in components are loaded first, so tests that register extra
    components never leak them into other tests.
    """
    registry_module.host_sources.keys()
    snapshots = [(registry, registry.snapshot()) for registry in REGISTRIES]
    yield
    for registry, snapshot in snapshots:
        registry.restore(snapshot)


@pytest.fixture(autouse=True)
def clean_metrics() -> Generator[None, None, None]:
    get_metrics_registry().reset()
    yield
    get_metrics_registry().reset()


# =============================================================================
# Sample Data
# =============================================================================


@pytest.fixture
def hosts() -> list[HostContext]:
    return [
        freeze_host({"source": "optica", "hostname": "web-1", "role": "web", "environment": "production"}),
        freeze_host({"source": "optica", "hostname": "web-2", "role": "web", "environment": "production"}),
        freeze_host({"source": "optica", "hostname": "db-1", "role": "db", "environment": "staging"}),
    ]


@pytest.fixture
def groups() -> dict[str, list[str]]:
    return {"sre": ["alice", "bob"], "dba": ["carol"], "empty": []}


@pytest.fixture
def fake_client() -> FakeProviderClient:
    return FakeProviderClient()


@pytest.fixture
def destination(fake_client):
    return make_destination(fake_client)


@pytest.fixture
def alerts_repo(tmp_path: Path) -> Path:
    """Empty alerts repository with the conventional directories."""
    for sub in ("alerts", "scripts", "groups"):
        (tmp_path / sub).mkdir()
    return tmp_path
