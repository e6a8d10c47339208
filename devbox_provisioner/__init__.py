"""devbox-provisioner: converge a Windows workstation to a WSL2 dev setup.

Core design goals:
- Declarative resources with test/get/apply
- Dependency-ordered, deterministic convergence
- Idempotent re-runs
- Resumable across reboots via persisted run state
- Centralized logging
"""

from .engine import Outcome, ResourceStatus, RunResult, run_convergence
from .graph import DependencyGraph
from .registry import ResourceRegistry
from .resource import ApplyResult, ErrorInfo, FunctionResource, Resource
from .run_state import RunState, RunStateStore

__all__ = [
    "ApplyResult",
    "DependencyGraph",
    "ErrorInfo",
    "FunctionResource",
    "Outcome",
    "Resource",
    "ResourceRegistry",
    "ResourceStatus",
    "RunResult",
    "RunState",
    "RunStateStore",
    "run_convergence",
]
