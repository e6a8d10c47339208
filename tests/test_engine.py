"""Unit tests: convergence engine (fake resources, real on-disk run state)."""

from __future__ import annotations

import logging

import pytest

from conftest import applied, graph_of, tested
from devbox_provisioner.engine import Outcome, ResourceStatus, run_convergence, start_or_resume
from devbox_provisioner.resource import ApplyResult
from devbox_provisioner.run_state import RunState


def _abc(make, **a_kwargs):
    return (
        make("A", **a_kwargs),
        make("B", depends_on=["A"]),
        make("C", depends_on=["A"]),
    )


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------


class TestScenarios:
    def test_a_all_converge_in_dependency_then_declaration_order(self, make, calls, store):
        graph = graph_of(*_abc(make))
        result = run_convergence(graph=graph, store=store)

        assert result.outcome == Outcome.CONVERGED
        assert applied(calls) == ["A", "B", "C"]
        assert [r.status for r in result.reports] == [ResourceStatus.CONVERGED] * 3
        # Full convergence removes the run state.
        assert not store.exists()

    def test_b_reboot_halts_with_resource_still_pending(self, make, calls, store):
        graph = graph_of(*_abc(make, results=[ApplyResult.reboot()]))
        result = run_convergence(graph=graph, store=store)

        assert result.outcome == Outcome.REBOOT_PENDING
        assert result.reboot_resource == "A"
        assert applied(calls) == ["A"]
        assert result.reports[0].status == ResourceStatus.REBOOT_PENDING

        persisted = store.load()
        assert persisted is not None
        assert persisted.pending == ["A", "B", "C"]
        assert persisted.completed == []
        assert persisted.reboot_requested is True

    def test_c_resume_retests_rebooted_resource_then_continues(self, make, calls, store):
        a, b, c = _abc(make, results=[ApplyResult.reboot()])
        run_convergence(graph=graph_of(a, b, c), store=store)

        # The reboot finished A's change.
        a.converged = True
        calls.clear()

        result = run_convergence(graph=graph_of(a, b, c), store=store)

        assert result.outcome == Outcome.CONVERGED
        assert calls[0] == ("test", "A")
        assert applied(calls) == ["B", "C"]
        statuses = {r.name: r.status for r in result.reports}
        assert statuses == {
            "A": ResourceStatus.SKIPPED,
            "B": ResourceStatus.CONVERGED,
            "C": ResourceStatus.CONVERGED,
        }

    def test_d_failure_stops_run_and_keeps_earlier_convergence(self, make, calls, store):
        graph = graph_of(
            make("A"),
            make("B", depends_on=["A"], results=[ApplyResult.failed("winget exited 1")]),
            make("C", depends_on=["A"]),
        )
        result = run_convergence(graph=graph, store=store)

        assert result.outcome == Outcome.FAILED
        assert result.error is not None
        assert result.error.resource == "B"
        assert "winget exited 1" in str(result.error)
        assert "C" not in applied(calls)
        assert "C" not in tested(calls)

        persisted = store.load()
        assert persisted.completed == ["A"]
        assert persisted.pending == ["B", "C"]
        assert persisted.last_error["resource"] == "B"


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


class TestProperties:
    def test_second_run_applies_nothing(self, make, calls, store):
        resources = _abc(make)
        run_convergence(graph=graph_of(*resources), store=store)
        calls.clear()

        result = run_convergence(graph=graph_of(*resources), store=store)

        assert applied(calls) == []
        assert tested(calls) == ["A", "B", "C"]
        assert result.skipped == ["A", "B", "C"]

    def test_resume_never_reapplies_completed(self, make, calls, store):
        graph = graph_of(
            make("A"),
            make("B", depends_on=["A"], results=[ApplyResult.reboot()]),
            make("C", depends_on=["B"]),
        )
        run_convergence(graph=graph, store=store)
        calls.clear()

        run_convergence(graph=graph, store=store)

        assert "A" not in tested(calls)
        assert "A" not in applied(calls)
        # B's test still fails (reboot did not help), so it is applied again.
        assert applied(calls) == ["B", "C"]

    def test_failure_isolation_covers_transitive_dependents(self, make, calls, store):
        graph = graph_of(
            make("base", results=[ApplyResult.failed("boom")]),
            make("mid", depends_on=["base"]),
            make("leaf", depends_on=["mid"]),
            make("unrelated"),
        )
        result = run_convergence(graph=graph, store=store)

        assert result.outcome == Outcome.FAILED
        assert applied(calls) == ["base"]
        for name in graph.dependents_of("base"):
            assert name not in applied(calls)

    def test_failure_also_stops_independent_resources(self, make, calls, store):
        graph = graph_of(make("first", results=[ApplyResult.failed("boom")]), make("other"))
        run_convergence(graph=graph, store=store)
        assert applied(calls) == ["first"]

    def test_same_decisions_across_identical_runs(self, make, calls, store, tmp_path):
        from devbox_provisioner.run_state import RunStateStore

        def build():
            return graph_of(
                make("x", converged=True),
                make("y", depends_on=["x"]),
                make("z"),
            )

        first = run_convergence(graph=build(), store=store)
        second = run_convergence(graph=build(), store=RunStateStore(str(tmp_path / "other.json")))

        assert [(r.name, r.status) for r in first.reports] == [(r.name, r.status) for r in second.reports]


# ---------------------------------------------------------------------------
# Errors from resources
# ---------------------------------------------------------------------------


class TestResourceErrors:
    def test_raising_test_means_not_converged(self, make, calls, store, caplog):
        graph = graph_of(make("A", test_raises=OSError("dism missing")))
        with caplog.at_level(logging.WARNING):
            result = run_convergence(graph=graph, store=store)

        assert result.outcome == Outcome.CONVERGED
        assert applied(calls) == ["A"]
        assert result.reports[0].test_error.kind == "OSError"
        assert "dism missing" in caplog.text

    def test_test_error_surfaces_when_apply_then_fails(self, make, store):
        graph = graph_of(
            make(
                "A",
                test_raises=OSError("dism missing"),
                results=[ApplyResult.failed("enable failed")],
            )
        )
        result = run_convergence(graph=graph, store=store)

        assert result.outcome == Outcome.FAILED
        assert result.error.test_error == "dism missing"
        assert "dism missing" in str(result.error)
        assert store.load().last_error["test_error"] == "dism missing"

    def test_raising_apply_is_a_failure(self, make, store):
        graph = graph_of(make("A", apply_raises=RuntimeError("exit 5")))
        result = run_convergence(graph=graph, store=store)

        assert result.outcome == Outcome.FAILED
        assert result.error.kind == "RuntimeError"
        assert result.reports[0].status == ResourceStatus.FAILED

    def test_apply_returning_wrong_type_is_a_failure(self, store):
        from devbox_provisioner.resource import FunctionResource

        graph = graph_of(FunctionResource(name="A", test_fn=lambda: False, apply_fn=lambda: True))
        result = run_convergence(graph=graph, store=store)

        assert result.outcome == Outcome.FAILED
        assert "expected ApplyResult" in result.error.message

    def test_get_failure_does_not_change_outcome(self, store):
        from devbox_provisioner.resource import FunctionResource

        def broken_get():
            raise ValueError("no snapshot")

        graph = graph_of(
            FunctionResource(name="A", test_fn=lambda: False, apply_fn=ApplyResult.ok, get_fn=broken_get)
        )
        result = run_convergence(graph=graph, store=store)

        assert result.outcome == Outcome.CONVERGED
        assert result.reports[0].snapshot is None

    def test_snapshot_recorded_after_apply(self, make, store):
        result = run_convergence(graph=graph_of(make("A")), store=store)
        assert result.reports[0].snapshot == {"converged": True}


# ---------------------------------------------------------------------------
# Run state handling
# ---------------------------------------------------------------------------


class TestRunState:
    def test_state_saved_after_every_transition(self, make, store, monkeypatch):
        snapshots = []
        real_save = store.save

        def spy(state):
            snapshots.append((list(state.completed), list(state.pending), state.reboot_requested))
            real_save(state)

        monkeypatch.setattr(store, "save", spy)
        run_convergence(graph=graph_of(make("A", converged=True), make("B")), store=store)

        assert snapshots == [
            ([], ["A", "B"], False),
            (["A"], ["B"], False),
            (["A", "B"], [], False),
        ]

    def test_resume_drops_completed_names_no_longer_declared(self, make, store):
        store.save(RunState(completed=["gone", "A"], pending=["B"]))
        graph = graph_of(make("A"), make("B"))

        state = start_or_resume(graph, store)

        assert state.completed == ["A"]
        assert state.pending == ["B"]

    def test_resume_picks_up_newly_declared_resources(self, make, calls, store):
        store.save(RunState(completed=["A"], pending=[], reboot_requested=True))
        graph = graph_of(make("A"), make("new", depends_on=["A"]))

        result = run_convergence(graph=graph, store=store)

        assert result.outcome == Outcome.CONVERGED
        assert applied(calls) == ["new"]

    def test_resume_clears_reboot_flag(self, make, store):
        store.save(RunState(completed=[], pending=["A"], reboot_requested=True))
        state = start_or_resume(graph_of(make("A")), store)
        assert state.reboot_requested is False
        assert store.load().reboot_requested is False

    def test_explicit_run_state_is_used(self, make, calls, store):
        state = RunState(completed=["A"], pending=["B"])
        run_convergence(graph=graph_of(make("A"), make("B")), store=store, run_state=state)
        assert tested(calls) == ["B"]


# ---------------------------------------------------------------------------
# Dry run
# ---------------------------------------------------------------------------


class TestDryRun:
    def test_dry_run_tests_everything_and_applies_nothing(self, make, calls, store):
        graph = graph_of(make("A", converged=True), make("B", depends_on=["A"]), make("C"))
        result = run_convergence(graph=graph, store=store, dry_run=True)

        assert applied(calls) == []
        assert tested(calls) == ["A", "B", "C"]
        assert [r.status for r in result.reports] == [
            ResourceStatus.SKIPPED,
            ResourceStatus.PLANNED,
            ResourceStatus.PLANNED,
        ]
        assert not store.exists()

    def test_dry_run_leaves_existing_state_alone(self, make, store):
        store.save(RunState(completed=["A"], pending=["B"], reboot_requested=True))
        before = store.path.read_text(encoding="utf-8")

        run_convergence(graph=graph_of(make("A"), make("B")), store=store, dry_run=True)

        assert store.path.read_text(encoding="utf-8") == before


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "results, expected",
    [
        ([], "[applied] A"),
        ([ApplyResult.reboot()], "[reboot-pending] A"),
        ([ApplyResult.failed("nope")], "[failed] A: nope"),
    ],
)
def test_status_line_per_resource(make, store, caplog, results, expected):
    with caplog.at_level(logging.INFO, logger="devbox_provisioner.engine"):
        run_convergence(graph=graph_of(make("A", results=results)), store=store)
    assert expected in caplog.text
    assert "Summary: outcome=" in caplog.text
