from __future__ import annotations

import logging
from typing import Sequence, Tuple

from ..lib.command import run_cmd
from ..lib.windows import powershell, ps_quote
from ..resource import ApplyResult, StateSnapshot

logger = logging.getLogger(__name__)


class RestorePointResource:
    """A System Restore point with a known description exists."""

    def __init__(
        self,
        name: str,
        description: str,
        *,
        depends_on: Sequence[str] = (),
        dry_run: bool = False,
    ) -> None:
        self.name = name
        self.description = description
        self.depends_on: Tuple[str, ...] = tuple(depends_on)
        self.dry_run = dry_run

    def _count(self) -> int:
        script = (
            "@(Get-ComputerRestorePoint | Where-Object { $_.Description -eq "
            f"{ps_quote(self.description)} }}).Count"
        )
        r = powershell(script, check=False)
        out = r.stdout.strip()
        return int(out) if r.returncode == 0 and out.isdigit() else 0

    def test(self) -> bool:
        return self._count() > 0

    def get(self) -> StateSnapshot:
        return {"description": self.description, "restore_points": self._count()}

    def apply(self) -> ApplyResult:
        script = (
            'Enable-ComputerRestore -Drive "$env:SystemDrive\\"; '
            f"Checkpoint-Computer -Description {ps_quote(self.description)} "
            "-RestorePointType MODIFY_SETTINGS"
        )
        powershell(script, dry_run=self.dry_run)
        if not self.dry_run and not self.test():
            # Windows silently skips a checkpoint taken within 24h of the last one.
            return ApplyResult.failed(
                f"restore point {self.description!r} was not created (creation frequency limit?)"
            )
        return ApplyResult.ok()


class ImageBackupResource:
    """A full wbadmin image backup exists on the backup target."""

    def __init__(
        self,
        name: str,
        target: str,
        *,
        depends_on: Sequence[str] = (),
        dry_run: bool = False,
    ) -> None:
        self.name = name
        self.target = target
        self.depends_on: Tuple[str, ...] = tuple(depends_on)
        self.dry_run = dry_run

    def _versions(self) -> list[str]:
        r = run_cmd(
            ["wbadmin.exe", "get", "versions", f"-backupTarget:{self.target}"],
            check=False,
        )
        if r.returncode != 0:
            return []
        return [
            line.split(":", 1)[1].strip()
            for line in r.stdout.splitlines()
            if line.strip().lower().startswith("version identifier")
        ]

    def test(self) -> bool:
        return bool(self._versions())

    def get(self) -> StateSnapshot:
        return {"target": self.target, "versions": self._versions()}

    def apply(self) -> ApplyResult:
        logger.info("Starting full image backup to %s; this can take a long time", self.target)
        run_cmd(
            [
                "wbadmin.exe",
                "start",
                "backup",
                f"-backupTarget:{self.target}",
                "-include:C:",
                "-allCritical",
                "-quiet",
            ],
            dry_run=self.dry_run,
        )
        return ApplyResult.ok()
