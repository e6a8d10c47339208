from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Protocol, Sequence, Tuple, Union

# Observed state, for diagnostics only.
StateSnapshot = Dict[str, Any]


@dataclass(frozen=True)
class ErrorInfo:
    message: str
    kind: str = "ApplyFailed"

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ErrorInfo":
        return cls(message=str(exc) or type(exc).__name__, kind=type(exc).__name__)

    def to_dict(self) -> Dict[str, str]:
        return {"message": self.message, "kind": self.kind}


@dataclass(frozen=True)
class ApplyResult:
    succeeded: bool
    requires_reboot: bool = False
    error: Optional[ErrorInfo] = None

    @classmethod
    def ok(cls) -> "ApplyResult":
        return cls(succeeded=True)

    @classmethod
    def reboot(cls) -> "ApplyResult":
        return cls(succeeded=True, requires_reboot=True)

    @classmethod
    def failed(cls, error: Union[str, BaseException, ErrorInfo]) -> "ApplyResult":
        if isinstance(error, ErrorInfo):
            info = error
        elif isinstance(error, BaseException):
            info = ErrorInfo.from_exception(error)
        else:
            info = ErrorInfo(message=str(error))
        return cls(succeeded=False, error=info)


class Resource(Protocol):
    """A named unit of desired state.

    test() answers "already converged?", get() describes what is there now,
    apply() moves the host towards the desired state.
    """

    name: str
    depends_on: Sequence[str]

    def test(self) -> bool:
        ...

    def get(self) -> StateSnapshot:
        ...

    def apply(self) -> ApplyResult:
        ...


def _empty_snapshot() -> StateSnapshot:
    return {}


@dataclass(frozen=True)
class FunctionResource:
    """Resource assembled from plain callables."""

    name: str
    test_fn: Callable[[], bool]
    apply_fn: Callable[[], ApplyResult]
    get_fn: Callable[[], StateSnapshot] = _empty_snapshot
    depends_on: Tuple[str, ...] = field(default_factory=tuple)

    def test(self) -> bool:
        return bool(self.test_fn())

    def get(self) -> StateSnapshot:
        return dict(self.get_fn())

    def apply(self) -> ApplyResult:
        return self.apply_fn()
