from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .errors import ResourceApplyError, ResourceTestError
from .graph import DependencyGraph
from .resource import ApplyResult, ErrorInfo, Resource, StateSnapshot
from .run_state import RunState, RunStateStore

logger = logging.getLogger(__name__)


class Outcome(str, enum.Enum):
    CONVERGED = "converged"
    FAILED = "failed"
    REBOOT_PENDING = "reboot-pending"


class ResourceStatus(str, enum.Enum):
    PENDING = "pending"
    TESTING = "testing"
    SKIPPED = "skipped"
    APPLYING = "applying"
    CONVERGED = "applied"
    FAILED = "failed"
    REBOOT_PENDING = "reboot-pending"
    PLANNED = "planned"


@dataclass
class ResourceReport:
    name: str
    status: ResourceStatus = ResourceStatus.PENDING
    snapshot: Optional[StateSnapshot] = None
    error: Optional[ErrorInfo] = None
    test_error: Optional[ErrorInfo] = None


@dataclass
class RunResult:
    outcome: Outcome
    reports: List[ResourceReport] = field(default_factory=list)
    error: Optional[ResourceApplyError] = None
    reboot_resource: Optional[str] = None
    run_state: Optional[RunState] = None

    def names_with(self, status: ResourceStatus) -> List[str]:
        return [r.name for r in self.reports if r.status == status]

    @property
    def applied(self) -> List[str]:
        return self.names_with(ResourceStatus.CONVERGED)

    @property
    def skipped(self) -> List[str]:
        return self.names_with(ResourceStatus.SKIPPED)


def start_or_resume(graph: DependencyGraph, store: RunStateStore) -> RunState:
    """Load persisted run state, or start a new one, and line it up with graph."""

    state = store.load()
    if state is None:
        state = RunState(pending=list(graph.order))
        logger.info("Starting new run (%d resources)", len(graph.order))
    else:
        stale = [n for n in state.completed if n not in graph.resources]
        if stale:
            logger.warning("Dropping completed resources no longer declared: %s", ", ".join(stale))
        state.completed = [n for n in graph.order if n in state.completed]
        logger.info(
            "Resuming run (completed=%d, reboot_requested=%s)",
            len(state.completed),
            state.reboot_requested,
        )

    state.pending = [n for n in graph.order if n not in state.completed]
    state.reboot_requested = False
    store.save(state)
    return state


def run_convergence(
    *,
    graph: DependencyGraph,
    store: RunStateStore,
    run_state: Optional[RunState] = None,
    dry_run: bool = False,
) -> RunResult:
    """Converge every resource in dependency order, one at a time.

    Halts at the first failed apply or the first apply that needs a reboot.
    run_state is saved after every transition; dry_run neither applies nor
    touches the store.
    """

    if dry_run:
        state = RunState(pending=list(graph.order))
    elif run_state is None:
        state = start_or_resume(graph, store)
    else:
        state = run_state

    result = RunResult(outcome=Outcome.CONVERGED, run_state=state)

    for name in graph.order:
        if state.is_completed(name):
            logger.debug("Skipping %s (completed in an earlier pass)", name)
            continue

        resource = graph.resources[name]
        report = ResourceReport(name=name)
        result.reports.append(report)

        report.status = ResourceStatus.TESTING
        converged = _test(resource, report)

        if converged:
            report.status = ResourceStatus.SKIPPED
            logger.info("[%s] %s", report.status.value, name)
            if not dry_run:
                state.mark_completed(name)
                store.save(state)
            continue

        if dry_run:
            report.status = ResourceStatus.PLANNED
            logger.info("[%s] %s", report.status.value, name)
            continue

        report.status = ResourceStatus.APPLYING
        applied = _apply(resource)
        report.snapshot = _snapshot(resource)

        if not applied.succeeded:
            report.status = ResourceStatus.FAILED
            report.error = applied.error or ErrorInfo(message="apply reported failure")
            test_error = report.test_error.message if report.test_error else None
            state.last_error = {"resource": name, **report.error.to_dict()}
            if test_error:
                state.last_error["test_error"] = test_error
            store.save(state)

            result.outcome = Outcome.FAILED
            result.error = ResourceApplyError(
                name, report.error.message, kind=report.error.kind, test_error=test_error
            )
            logger.error("[%s] %s: %s", report.status.value, name, report.error.message)
            break

        if applied.requires_reboot:
            report.status = ResourceStatus.REBOOT_PENDING
            state.reboot_requested = True
            store.save(state)

            result.outcome = Outcome.REBOOT_PENDING
            result.reboot_resource = name
            logger.info("[%s] %s", report.status.value, name)
            break

        report.status = ResourceStatus.CONVERGED
        state.mark_completed(name)
        state.last_error = None
        store.save(state)
        logger.info("[%s] %s", report.status.value, name)

    if result.outcome == Outcome.CONVERGED and not dry_run:
        store.clear()

    _log_summary(result, state, dry_run=dry_run)
    return result


def _test(resource: Resource, report: ResourceReport) -> bool:
    try:
        return bool(resource.test())
    except Exception as e:
        err = ResourceTestError(resource.name, e)
        logger.warning("%s; treating as not converged", err)
        report.test_error = ErrorInfo.from_exception(e)
        return False


def _apply(resource: Resource) -> ApplyResult:
    try:
        applied = resource.apply()
    except Exception as e:
        logger.exception("Apply raised for %s", resource.name)
        return ApplyResult.failed(e)
    if not isinstance(applied, ApplyResult):
        return ApplyResult.failed(f"apply returned {type(applied).__name__}, expected ApplyResult")
    return applied


def _snapshot(resource: Resource) -> Optional[StateSnapshot]:
    try:
        return dict(resource.get())
    except Exception as e:
        logger.warning("Could not read state of %s: %s", resource.name, e)
        return None


def _log_summary(result: RunResult, state: RunState, *, dry_run: bool) -> None:
    counts = {s: len(result.names_with(s)) for s in ResourceStatus}
    logger.info(
        "Summary: outcome=%s%s applied=%d skipped=%d planned=%d failed=%d reboot_pending=%d",
        result.outcome.value,
        " (dry-run)" if dry_run else "",
        counts[ResourceStatus.CONVERGED],
        counts[ResourceStatus.SKIPPED],
        counts[ResourceStatus.PLANNED],
        counts[ResourceStatus.FAILED],
        counts[ResourceStatus.REBOOT_PENDING],
    )
    if result.outcome != Outcome.CONVERGED:
        left = [n for n in state.pending if n != result.reboot_resource]
        if result.error is not None:
            left = [n for n in left if n != result.error.resource]
        if left:
            logger.info("Not processed this run: %s", ", ".join(left))
