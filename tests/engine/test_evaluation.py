"""Tests for the evaluation engine."""

from __future__ import annotations

import pytest

from alert_spine.domain.models import NotifyPolicy
from alert_spine.engine.evaluation import evaluate, evaluate_definition
from alert_spine.execution.cancellation import ShutdownToken
from alert_spine.observability.metrics import gauge
from tests._support.fakes import StubDefinition, make_alert, per_host


def _failing(host):
    raise KeyError("owner")


class TestEvaluateDefinition:
    def test_one_alert_per_matching_host(self, hosts, groups):
        definition = StubDefinition("disk.yml", per_host(groups=("sre",)))
        outcome = evaluate_definition(definition, hosts, groups)

        assert outcome.evaluations == 3
        assert outcome.applies == 3
        assert sorted(outcome.accepted) == [
            "disk full on db-1 [alert-spine]",
            "disk full on web-1 [alert-spine]",
            "disk full on web-2 [alert-spine]",
        ]
        desired = outcome.accepted["disk full on web-1 [alert-spine]"]
        assert desired.recipients == frozenset({"alice", "bob"})
        assert desired.definition == "disk.yml"

    def test_same_name_is_accepted_once(self, hosts, groups):
        definition = StubDefinition("cluster.yml", per_host("cluster cpu [alert-spine]"))
        outcome = evaluate_definition(definition, hosts, groups)
        assert outcome.applies == 3
        assert list(outcome.accepted) == ["cluster cpu [alert-spine]"]

    def test_once_stops_after_first_application(self, hosts, groups):
        definition = StubDefinition("global.yml", per_host("global [alert-spine]", applies="once"))
        outcome = evaluate_definition(definition, hosts, groups)
        assert definition.builds == 1
        assert outcome.applies == 1
        assert list(outcome.accepted) == ["global [alert-spine]"]

    def test_once_after_never(self, hosts, groups):
        def build(host):
            return make_alert(f"{host['hostname']} [alert-spine]"), "once" if host["role"] == "db" else False

        outcome = evaluate_definition(StubDefinition("db.yml", build), hosts, groups)
        assert list(outcome.accepted) == ["db-1 [alert-spine]"]

    def test_fallback_groups_when_no_recipients(self, hosts, groups):
        definition = StubDefinition("x.yml", per_host(groups=("empty",), fallback_groups=("dba",)))
        outcome = evaluate_definition(definition, hosts[:1], groups)
        (desired,) = outcome.accepted.values()
        assert desired.recipients == frozenset({"carol"})

    def test_errors_are_counted_per_host(self, hosts, groups):
        def build(host):
            if host["role"] == "db":
                raise ValueError("no owner")
            return make_alert(f"{host['hostname']} [alert-spine]"), True

        outcome = evaluate_definition(StubDefinition("x.yml", build), hosts, groups)
        assert outcome.errors == 1
        assert outcome.applies == 2
        assert outcome.last_error == "ValueError: no owner"
        assert not outcome.failed_on_all

    def test_failed_on_all_hosts(self, hosts, groups):
        outcome = evaluate_definition(StubDefinition("bad.yml", _failing), hosts, groups)
        assert outcome.failed_on_all
        assert outcome.never_applies
        assert outcome.accepted == {}


class TestEvaluate:
    def test_merges_in_definition_order(self, hosts, groups):
        first = StubDefinition("a.yml", per_host("shared [alert-spine]", people=("alice",)))
        second = StubDefinition("b.yml", per_host("shared [alert-spine]", people=("bob",)))

        result = evaluate(hosts, [first, second], groups)

        assert result.collisions == 1
        assert result.desired["shared [alert-spine]"].definition == "a.yml"
        assert result.desired["shared [alert-spine]"].recipients == frozenset({"alice"})

    def test_failing_and_never_applying_definitions_are_errors(self, hosts, groups):
        ok = StubDefinition("ok.yml", per_host())
        never = StubDefinition("never.yml", per_host(applies=False))
        broken = StubDefinition("broken.yml", _failing)

        result = evaluate(hosts, [ok, never, broken], groups)

        assert result.errors == ["never.yml", "broken.yml"]
        assert len(result.desired) == 3

    def test_reports_metrics(self, hosts, groups):
        evaluate(hosts, [StubDefinition("bad.yml", _failing)], groups)
        assert gauge("alerts.evaluate.failed_on_all").value(definition="bad.yml") == 1
        assert gauge("alerts.evaluate.never_applies").value(definition="bad.yml") == 1

    def test_thread_pool(self, hosts, groups):
        definitions = [StubDefinition(f"{i}.yml", per_host(f"alert {i} %s [alert-spine]")) for i in range(4)]
        result = evaluate(hosts, definitions, groups, processes=2, pool="thread")
        assert len(result.desired) == 12
        assert [o.definition for o in result.outcomes] == ["0.yml", "1.yml", "2.yml", "3.yml"]

    def test_shutdown_stops_before_next_definition(self, hosts, groups):
        token = ShutdownToken()

        def build(host):
            token.request("test")
            return make_alert("first [alert-spine]"), True

        first = StubDefinition("first.yml", build)
        second = StubDefinition("second.yml", per_host())

        result = evaluate(hosts, [first, second], groups, shutdown=token)

        assert result.interrupted
        assert second.builds == 0
        assert list(result.desired) == ["first [alert-spine]"]

    @pytest.mark.parametrize("recovery", [True, False])
    def test_notify_policy_carried(self, hosts, groups, recovery):
        definition = StubDefinition("x.yml", per_host("x [alert-spine]", recovery=recovery))
        result = evaluate(hosts, [definition], groups)
        assert result.desired["x [alert-spine]"].alert.notify == NotifyPolicy(recovery=recovery)
