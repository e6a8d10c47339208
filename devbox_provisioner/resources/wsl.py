from __future__ import annotations

from typing import Sequence, Tuple

from ..lib.windows import wsl, wsl_default_version, wsl_distributions
from ..resource import ApplyResult, StateSnapshot


class WslDefaultVersionResource:
    def __init__(
        self,
        name: str,
        version: int = 2,
        *,
        depends_on: Sequence[str] = (),
        dry_run: bool = False,
    ) -> None:
        self.name = name
        self.version = version
        self.depends_on: Tuple[str, ...] = tuple(depends_on)
        self.dry_run = dry_run

    def test(self) -> bool:
        return wsl_default_version() == self.version

    def get(self) -> StateSnapshot:
        return {"default_version": wsl_default_version()}

    def apply(self) -> ApplyResult:
        wsl(["--set-default-version", str(self.version)], dry_run=self.dry_run)
        return ApplyResult.ok()


class WslDistroResource:
    """A registered WSL distribution, installed without launching it.

    Matching is a case-insensitive comparison against `wsl --list --quiet`.
    """

    def __init__(
        self,
        name: str,
        distro: str,
        *,
        depends_on: Sequence[str] = (),
        dry_run: bool = False,
    ) -> None:
        self.name = name
        self.distro = distro
        self.depends_on: Tuple[str, ...] = tuple(depends_on)
        self.dry_run = dry_run

    def test(self) -> bool:
        wanted = self.distro.lower()
        return any(d.lower() == wanted for d in wsl_distributions())

    def get(self) -> StateSnapshot:
        return {"distro": self.distro, "installed": wsl_distributions()}

    def apply(self) -> ApplyResult:
        wsl(["--install", "-d", self.distro, "--no-launch"], dry_run=self.dry_run)
        return ApplyResult.ok()
