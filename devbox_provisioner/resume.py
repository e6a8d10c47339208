from __future__ import annotations

import logging
import subprocess
import sys
from typing import Sequence

from .lib.command import run_cmd
from .lib.windows import reg_add

logger = logging.getLogger(__name__)

RUNONCE_KEY = r"HKLM\Software\Microsoft\Windows\CurrentVersion\RunOnce"
RUNONCE_VALUE = "DevboxProvisionerResume"


def resume_command(args: Sequence[str]) -> str:
    """Command line that re-enters the provisioner with the same arguments."""
    return subprocess.list2cmdline([sys.executable, "-m", "devbox_provisioner.main", *args])


def schedule_resume(args: Sequence[str], *, dry_run: bool = False) -> str:
    """Register a one-shot resume at next administrator logon."""

    command = resume_command(args)
    reg_add(RUNONCE_KEY, RUNONCE_VALUE, command, dry_run=dry_run)
    logger.info("Scheduled resume after reboot: %s", command)
    return command


def request_reboot(delay_seconds: int, *, dry_run: bool = False) -> None:
    run_cmd(
        [
            "shutdown.exe",
            "/r",
            "/t",
            str(max(0, int(delay_seconds))),
            "/c",
            "devbox-provisioner: restarting to finish configuration",
        ],
        dry_run=dry_run,
    )
    logger.info("Reboot requested in %ss", delay_seconds)
