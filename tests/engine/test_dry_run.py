"""Tests for the dry-run session state machine."""

from __future__ import annotations

import pytest

from alert_spine.core.errors import DryRunFailedError, EvaluationError, InvalidTransitionError
from alert_spine.engine.dry_run import DEFAULT_PREFIX, DryRunSession, DryRunState
from alert_spine.engine.evaluation import EvaluationResult
from alert_spine.providers.base import ApiResponse
from tests._support.fakes import FakeProviderClient, make_desired, make_destination, remote_record


def _evaluation(*desired, errors=()):
    return EvaluationResult(desired={d.name: d for d in desired}, errors=list(errors))


def _session(client):
    return DryRunSession(make_destination(client), sleep=lambda s: None)


class TestDryRunSession:
    def test_validates_under_shadow_names(self):
        client = FakeProviderClient()
        session = _session(client)

        stats = session.run(_evaluation(make_desired("cpu"), make_desired("disk")))

        assert session.state is DryRunState.END
        assert client.calls_to("create") == []
        assert client.calls_to("update") == []
        names = sorted(call[3]["name"] for call in client.calls_to("validate"))
        assert names == [f"{DEFAULT_PREFIX}cpu", f"{DEFAULT_PREFIX}disk"]
        assert stats.alerts_to_be_created == 2
        assert stats.api_errors == []

    def test_production_alerts_are_not_considered(self):
        prod = make_desired("cpu")
        client = FakeProviderClient([remote_record(prod, 1), remote_record(make_desired("unrelated"), 2)])
        session = _session(client)

        session.run(_evaluation(prod))

        assert [a.kind.value for a in session.plan.actions.values()] == ["create"]
        assert session.plan.orphans == {}
        assert client.calls_to("delete") == []

    def test_one_validation_failure_fails_the_run(self):
        client = FakeProviderClient()
        client.queue("validate", ApiResponse(200, {}), ApiResponse(400, {"errors": ["bad query"]}))
        session = DryRunSession(make_destination(client, concurrency=1), sleep=lambda s: None)

        with pytest.raises(DryRunFailedError) as exc_info:
            session.run(_evaluation(make_desired("a"), make_desired("b")))

        assert exc_info.value.errors == [f"400 on alert {DEFAULT_PREFIX}b"]
        assert session.state is DryRunState.FAILED

    def test_cleanup_removes_validated_ids_and_leftovers(self):
        leftover = make_desired(f"{DEFAULT_PREFIX}stale")
        client = FakeProviderClient([remote_record(leftover, 50)])
        client.queue("validate", ApiResponse(200, {"id": 77}))
        session = _session(client)

        session.check_desired(_evaluation(make_desired("cpu")))
        session.shadow()
        session.probe()
        session.validate()
        # the stale shadow is an orphan; validation does not delete it
        assert client.calls_to("delete") == []

        assert session.cleanup() == 2
        assert sorted(call[1] for call in client.calls_to("delete")) == [50, 77]
        session.finish()
        assert session.state is DryRunState.END

    def test_evaluation_errors_are_fatal(self):
        session = _session(FakeProviderClient())
        with pytest.raises(EvaluationError) as exc_info:
            session.run(_evaluation(make_desired("cpu"), errors=["broken.yml"]))
        assert exc_info.value.definitions == ["broken.yml"]
        assert session.state is DryRunState.FAILED

    def test_unreadable_alert_files_are_fatal(self):
        session = _session(FakeProviderClient())
        with pytest.raises(EvaluationError, match="could not be read"):
            session.run(_evaluation(make_desired("cpu")), failed_reads=1)

    def test_steps_out_of_order(self):
        session = _session(FakeProviderClient())
        with pytest.raises(InvalidTransitionError):
            session.shadow()

        session.check_desired(_evaluation(make_desired("cpu")))
        with pytest.raises(InvalidTransitionError):
            session.validate()

    def test_failed_session_cannot_continue(self):
        session = _session(FakeProviderClient())
        with pytest.raises(EvaluationError):
            session.check_desired(_evaluation(errors=["x.yml"]))
        with pytest.raises(InvalidTransitionError):
            session.shadow()

    def test_validate_requires_a_plan(self):
        session = _session(FakeProviderClient())
        session.check_desired(_evaluation(make_desired("cpu")))
        session.shadow()
        session.probe()
        session.plan = None
        with pytest.raises(InvalidTransitionError, match="no plan"):
            session.validate()

    def test_cleanup_requires_validation(self):
        session = _session(FakeProviderClient())
        session.check_desired(_evaluation(make_desired("cpu")))
        session.shadow()
        session.probe()
        session.validate()
        session.executor = None
        with pytest.raises(InvalidTransitionError, match="not validated"):
            session.cleanup()
