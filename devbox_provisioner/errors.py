from __future__ import annotations

from typing import Optional, Sequence


class ProvisionerError(Exception):
    """Base class for all provisioner errors."""


class ConfigurationError(ProvisionerError):
    """The resource declarations or config are unusable; nothing was applied."""


class DuplicateResourceError(ConfigurationError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Duplicate resource name: {name!r}")
        self.name = name


class UnknownDependencyError(ConfigurationError):
    def __init__(self, resource: str, dependency: str) -> None:
        super().__init__(f"Resource {resource!r} depends on unknown resource {dependency!r}")
        self.resource = resource
        self.dependency = dependency


class CycleError(ConfigurationError):
    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = list(cycle)
        super().__init__("Dependency cycle: " + " -> ".join(self.cycle))


class ResourceTestError(ProvisionerError):
    """A resource's test predicate raised instead of answering."""

    def __init__(self, resource: str, cause: BaseException) -> None:
        super().__init__(f"Test for {resource!r} raised {type(cause).__name__}: {cause}")
        self.resource = resource
        self.cause = cause


class ResourceApplyError(ProvisionerError):
    """A resource could not be brought to its desired state."""

    def __init__(
        self,
        resource: str,
        message: str,
        *,
        kind: str = "ApplyFailed",
        test_error: Optional[str] = None,
    ) -> None:
        text = f"Apply failed for {resource!r}: {message}"
        if test_error:
            text += f" (test also failed: {test_error})"
        super().__init__(text)
        self.resource = resource
        self.message = message
        self.kind = kind
        self.test_error = test_error


class RunStateError(ProvisionerError):
    """Persisted run state exists but cannot be read back."""


class LockError(ProvisionerError):
    """Another provisioning run holds the lock."""


class CommandError(ProvisionerError):
    def __init__(self, argv: Sequence[str], returncode: int, stderr: str) -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"Command failed ({returncode}): {' '.join(self.argv)}\n{stderr}")
