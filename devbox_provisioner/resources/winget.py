from __future__ import annotations

from typing import Sequence, Tuple

from ..lib.windows import winget_install, winget_is_installed
from ..resource import ApplyResult, StateSnapshot


class WingetPackageResource:
    """A package installed through winget, matched by exact package id."""

    def __init__(
        self,
        name: str,
        package_id: str,
        *,
        depends_on: Sequence[str] = (),
        dry_run: bool = False,
    ) -> None:
        self.name = name
        self.package_id = package_id
        self.depends_on: Tuple[str, ...] = tuple(depends_on)
        self.dry_run = dry_run

    def test(self) -> bool:
        return winget_is_installed(self.package_id)

    def get(self) -> StateSnapshot:
        return {"package_id": self.package_id, "installed": self.test()}

    def apply(self) -> ApplyResult:
        winget_install(self.package_id, dry_run=self.dry_run)
        return ApplyResult.ok()
