from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .env import PATHS
from .errors import ConfigurationError


def _section(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = raw.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"config section '{key}' must be a mapping")
    return value


@dataclass(frozen=True)
class ProvisionConfig:
    raw: Dict[str, Any]

    @property
    def state_path(self) -> str:
        return str(_section(self.raw, "paths").get("state") or PATHS.state_default)

    @property
    def log_path(self) -> str:
        return str(_section(self.raw, "paths").get("log") or PATHS.log_default)

    @property
    def lock_path(self) -> str:
        return str(_section(self.raw, "paths").get("lock") or PATHS.lock_default)

    @property
    def restore_point(self) -> bool:
        return bool(_section(self.raw, "backup").get("restore_point", True))

    @property
    def restore_point_description(self) -> str:
        return str(_section(self.raw, "backup").get("restore_point_description") or "devbox-provisioner")

    @property
    def image_backup(self) -> bool:
        return bool(_section(self.raw, "backup").get("image", False))

    @property
    def image_target(self) -> str:
        return str(_section(self.raw, "backup").get("image_target") or "E:")

    @property
    def hyperv(self) -> bool:
        return bool(_section(self.raw, "features").get("hyperv", False))

    @property
    def wsl_distro(self) -> str:
        return str(_section(self.raw, "wsl").get("distro") or "Ubuntu")

    @property
    def wsl_default_version(self) -> int:
        version = _section(self.raw, "wsl").get("default_version", 2)
        try:
            return int(version)
        except (TypeError, ValueError):
            raise ConfigurationError(f"wsl.default_version must be an integer, got {version!r}") from None

    @property
    def docker_package(self) -> str:
        return str(_section(self.raw, "packages").get("docker") or "Docker.DockerDesktop")

    @property
    def editor_package(self) -> str:
        return str(_section(self.raw, "packages").get("editor") or "Microsoft.VisualStudioCode")

    @property
    def automatic_reboot(self) -> bool:
        return bool(_section(self.raw, "reboot").get("automatic", False))

    @property
    def reboot_delay_seconds(self) -> int:
        return int(_section(self.raw, "reboot").get("delay_seconds", 30))


def load_config(path: Optional[str]) -> ProvisionConfig:
    """Load a YAML config; no path means all defaults."""

    if path is None:
        return ProvisionConfig(raw={})

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ConfigurationError("config must be YAML (.yaml or .yml)")

    try:
        import yaml  # type: ignore
    except Exception as e:
        raise RuntimeError("PyYAML is required to read the provisioning config") from e

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"cannot parse {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{path} must contain a mapping/object")

    return ProvisionConfig(raw=raw)
