from __future__ import annotations

import heapq
import logging
from collections import deque
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Set, Tuple

from .errors import CycleError, UnknownDependencyError
from .registry import ResourceRegistry
from .resource import Resource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DependencyGraph:
    """Validated dependency graph plus the order to converge it in.

    dependencies[a] lists what must converge before a.
    """

    order: Tuple[str, ...]
    dependencies: Mapping[str, Tuple[str, ...]]
    resources: Mapping[str, Resource]

    @classmethod
    def build(cls, registry: ResourceRegistry) -> "DependencyGraph":
        names = registry.names()
        index = {name: i for i, name in enumerate(names)}

        deps: Dict[str, Tuple[str, ...]] = {}
        for r in registry:
            seen: List[str] = []
            for d in r.depends_on:
                if d not in index:
                    raise UnknownDependencyError(r.name, d)
                if d not in seen:
                    seen.append(d)
            deps[r.name] = tuple(seen)

        order = _kahn_order(names, index, deps)
        if len(order) != len(names):
            ordered = set(order)
            remaining = [n for n in names if n not in ordered]
            cycle = _shortest_cycle(remaining, deps)
            raise CycleError(cycle)

        logger.debug("Resource order: %s", ", ".join(order))
        return cls(
            order=tuple(order),
            dependencies=deps,
            resources={r.name: r for r in registry},
        )

    def dependents_of(self, name: str) -> List[str]:
        """Everything that transitively depends on name, in convergence order."""
        found: Set[str] = set()
        frontier = deque([name])
        while frontier:
            current = frontier.popleft()
            for other, deps in self.dependencies.items():
                if current in deps and other not in found:
                    found.add(other)
                    frontier.append(other)
        return [n for n in self.order if n in found]


def _kahn_order(
    names: List[str],
    index: Mapping[str, int],
    deps: Mapping[str, Tuple[str, ...]],
) -> List[str]:
    in_degree = {n: len(deps[n]) for n in names}
    dependents: Dict[str, List[str]] = {n: [] for n in names}
    for n in names:
        for d in deps[n]:
            dependents[d].append(n)

    # Always take the earliest-declared ready resource.
    ready = [index[n] for n in names if in_degree[n] == 0]
    heapq.heapify(ready)

    order: List[str] = []
    while ready:
        node = names[heapq.heappop(ready)]
        order.append(node)
        for child in dependents[node]:
            in_degree[child] -= 1
            if in_degree[child] == 0:
                heapq.heappush(ready, index[child])
    return order


def _shortest_cycle(remaining: List[str], deps: Mapping[str, Tuple[str, ...]]) -> List[str]:
    members = set(remaining)
    best: Optional[List[str]] = None

    for start in remaining:
        parent: Dict[str, str] = {}
        queue = deque([start])
        visited = {start}
        path: Optional[List[str]] = None

        while queue and path is None:
            node = queue.popleft()
            for d in deps[node]:
                if d not in members:
                    continue
                if d == start:
                    path = [start]
                    cur = node
                    while cur != start:
                        path.append(cur)
                        cur = parent[cur]
                    path.append(start)
                    # Walked backwards; the closing start already sits at both ends.
                    path = [start] + list(reversed(path[1:-1])) + [start]
                    break
                if d not in visited:
                    visited.add(d)
                    parent[d] = node
                    queue.append(d)

        if path is not None and (best is None or len(path) < len(best)):
            best = path

    # Kahn leaves at least one full cycle behind, so best is always set here.
    return best if best is not None else list(remaining)
