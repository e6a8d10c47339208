"""Windows workstation resources and the default provisioning registry."""

from __future__ import annotations

from typing import List

from ..config import ProvisionConfig
from ..registry import ResourceRegistry
from .backup import ImageBackupResource, RestorePointResource
from .windows_feature import (
    HYPERV_FEATURE,
    VM_PLATFORM_FEATURE,
    WSL_FEATURE,
    WindowsFeatureResource,
)
from .winget import WingetPackageResource
from .wsl import WslDefaultVersionResource, WslDistroResource


def build_registry(cfg: ProvisionConfig, *, dry_run: bool = False) -> ResourceRegistry:
    """Declare the workstation's desired state, safety snapshot first.

    dry_run only reaches the apply paths; test() and get() always query the host.
    """

    registry = ResourceRegistry()

    backups: List[str] = []
    if cfg.restore_point:
        registry.add(RestorePointResource("restore_point", cfg.restore_point_description, dry_run=dry_run))
        backups.append("restore_point")
    if cfg.image_backup:
        registry.add(ImageBackupResource("image_backup", cfg.image_target, dry_run=dry_run))
        backups.append("image_backup")

    registry.add(WindowsFeatureResource("wsl_feature", WSL_FEATURE, depends_on=backups, dry_run=dry_run))
    registry.add(WindowsFeatureResource("vm_platform", VM_PLATFORM_FEATURE, depends_on=backups, dry_run=dry_run))

    docker_deps = ["wsl_default_version"]
    if cfg.hyperv:
        registry.add(WindowsFeatureResource("hyperv", HYPERV_FEATURE, depends_on=backups, dry_run=dry_run))
        docker_deps.append("hyperv")

    registry.add(
        WslDefaultVersionResource(
            "wsl_default_version",
            cfg.wsl_default_version,
            depends_on=["wsl_feature", "vm_platform"],
            dry_run=dry_run,
        )
    )
    registry.add(WslDistroResource("wsl_distro", cfg.wsl_distro, depends_on=["wsl_default_version"], dry_run=dry_run))
    registry.add(WingetPackageResource("docker_desktop", cfg.docker_package, depends_on=docker_deps, dry_run=dry_run))
    registry.add(WingetPackageResource("editor", cfg.editor_package, depends_on=backups, dry_run=dry_run))

    return registry


__all__ = [
    "build_registry",
    "ImageBackupResource",
    "RestorePointResource",
    "WindowsFeatureResource",
    "WingetPackageResource",
    "WslDefaultVersionResource",
    "WslDistroResource",
]
