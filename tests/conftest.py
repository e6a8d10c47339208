"""Shared fixtures: in-memory fake resources and a temp run-state store."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from devbox_provisioner.graph import DependencyGraph
from devbox_provisioner.registry import ResourceRegistry
from devbox_provisioner.resource import ApplyResult
from devbox_provisioner.run_state import RunStateStore


class FakeResource:
    """Resource whose host state is a flag; records every call in a shared log."""

    def __init__(
        self,
        name: str,
        calls: List[Tuple[str, str]],
        *,
        depends_on: Sequence[str] = (),
        converged: bool = False,
        results: Optional[List[ApplyResult]] = None,
        test_raises: Optional[BaseException] = None,
        apply_raises: Optional[BaseException] = None,
    ) -> None:
        self.name = name
        self.depends_on = tuple(depends_on)
        self.converged = converged
        self.results = list(results or [])
        self.test_raises = test_raises
        self.apply_raises = apply_raises
        self.calls = calls

    def test(self) -> bool:
        self.calls.append(("test", self.name))
        if self.test_raises is not None:
            raise self.test_raises
        return self.converged

    def get(self) -> Dict[str, Any]:
        return {"converged": self.converged}

    def apply(self) -> ApplyResult:
        self.calls.append(("apply", self.name))
        if self.apply_raises is not None:
            raise self.apply_raises
        result = self.results.pop(0) if self.results else ApplyResult.ok()
        if result.succeeded and not result.requires_reboot:
            self.converged = True
        return result


@pytest.fixture
def calls() -> List[Tuple[str, str]]:
    return []


@pytest.fixture
def make(calls):
    def _make(name: str, **kwargs: Any) -> FakeResource:
        return FakeResource(name, calls, **kwargs)

    return _make


@pytest.fixture
def store(tmp_path) -> RunStateStore:
    return RunStateStore(str(tmp_path / "state" / "run-state.json"))


def graph_of(*resources: Any) -> DependencyGraph:
    return DependencyGraph.build(ResourceRegistry(resources))


def applied(calls: List[Tuple[str, str]]) -> List[str]:
    return [name for op, name in calls if op == "apply"]


def tested(calls: List[Tuple[str, str]]) -> List[str]:
    return [name for op, name in calls if op == "test"]
