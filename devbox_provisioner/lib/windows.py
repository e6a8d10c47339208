from __future__ import annotations

import logging
import re
from typing import List, Sequence

from .command import CmdResult, run_cmd

logger = logging.getLogger(__name__)

# Windows "operation succeeded, restart required".
ERROR_SUCCESS_REBOOT_REQUIRED = 3010

_FEATURE_STATE_RE = re.compile(r"^\s*State\s*:\s*(.+?)\s*$", re.MULTILINE)
_WSL_DEFAULT_VERSION_RE = re.compile(r"Default Version:\s*(\d+)", re.IGNORECASE)
_RESTART_NEEDED_RE = re.compile(r"^\s*Restart\s*Needed\s*:\s*(\w+)", re.IGNORECASE | re.MULTILINE)


def ps_quote(value: str) -> str:
    """Quote a value as a PowerShell single-quoted string literal."""
    return "'" + value.replace("'", "''") + "'"


def powershell(script: str, *, check: bool = True, dry_run: bool = False) -> CmdResult:
    return run_cmd(
        [
            "powershell.exe",
            "-NoProfile",
            "-NonInteractive",
            "-ExecutionPolicy",
            "Bypass",
            "-Command",
            script,
        ],
        check=check,
        dry_run=dry_run,
    )


# Query helpers below never take dry_run: they only read host state, so a
# dry run still sees the real machine.


def feature_state(feature: str) -> str:
    """Return the DISM state of an optional feature ("Enabled", "Disabled", "Enable Pending", ...)."""

    r = run_cmd(
        ["dism.exe", "/online", "/English", "/get-featureinfo", f"/featurename:{feature}"],
        check=False,
    )
    if r.returncode != 0:
        return "Unknown"
    m = _FEATURE_STATE_RE.search(r.stdout)
    return m.group(1) if m else "Unknown"


def enable_feature(feature: str, *, dry_run: bool = False) -> bool:
    """Enable an optional feature. Returns True if Windows wants a restart.

    DISM signals that either through exit code 3010 or a "Restart Needed"
    line in its output.
    """

    r = run_cmd(
        ["dism.exe", "/online", "/English", "/enable-feature", f"/featurename:{feature}", "/all", "/norestart"],
        ok_codes=(0, ERROR_SUCCESS_REBOOT_REQUIRED),
        dry_run=dry_run,
    )
    if r.returncode == ERROR_SUCCESS_REBOOT_REQUIRED:
        return True
    m = _RESTART_NEEDED_RE.search(r.stdout)
    return bool(m) and m.group(1).lower() in ("yes", "true")


def wsl(args: Sequence[str], *, check: bool = True, dry_run: bool = False) -> CmdResult:
    # wsl.exe writes UTF-16 unless told otherwise.
    return run_cmd(["wsl.exe", *args], check=check, env={"WSL_UTF8": "1"}, dry_run=dry_run)


def wsl_default_version() -> int | None:
    r = wsl(["--status"], check=False)
    m = _WSL_DEFAULT_VERSION_RE.search(r.stdout.replace("\x00", ""))
    return int(m.group(1)) if m else None


def wsl_distributions() -> List[str]:
    r = wsl(["--list", "--quiet"], check=False)
    if r.returncode != 0:
        return []
    return [line.strip() for line in r.stdout.replace("\x00", "").splitlines() if line.strip()]


def winget_is_installed(package_id: str) -> bool:
    r = run_cmd(
        ["winget.exe", "list", "--id", package_id, "--exact", "--accept-source-agreements"],
        check=False,
    )
    return r.returncode == 0 and package_id.lower() in r.stdout.lower()


def winget_install(package_id: str, *, dry_run: bool = False) -> None:
    run_cmd(
        [
            "winget.exe",
            "install",
            "--id",
            package_id,
            "--exact",
            "--silent",
            "--accept-package-agreements",
            "--accept-source-agreements",
        ],
        dry_run=dry_run,
    )


def reg_add(key: str, value_name: str, data: str, *, dry_run: bool = False) -> None:
    run_cmd(
        ["reg.exe", "add", key, "/v", value_name, "/t", "REG_SZ", "/d", data, "/f"],
        dry_run=dry_run,
    )
