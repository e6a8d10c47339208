from __future__ import annotations

import logging
from typing import Sequence, Tuple

from ..lib.windows import enable_feature, feature_state
from ..resource import ApplyResult, StateSnapshot

logger = logging.getLogger(__name__)

WSL_FEATURE = "Microsoft-Windows-Subsystem-Linux"
VM_PLATFORM_FEATURE = "VirtualMachinePlatform"
HYPERV_FEATURE = "Microsoft-Hyper-V-All"


class WindowsFeatureResource:
    """A Windows optional feature that must be enabled."""

    def __init__(
        self,
        name: str,
        feature: str,
        *,
        depends_on: Sequence[str] = (),
        dry_run: bool = False,
    ) -> None:
        self.name = name
        self.feature = feature
        self.depends_on: Tuple[str, ...] = tuple(depends_on)
        self.dry_run = dry_run

    def test(self) -> bool:
        return feature_state(self.feature) == "Enabled"

    def get(self) -> StateSnapshot:
        return {"feature": self.feature, "state": feature_state(self.feature)}

    def apply(self) -> ApplyResult:
        if enable_feature(self.feature, dry_run=self.dry_run):
            logger.info("%s enabled; Windows requires a restart to finish", self.feature)
            return ApplyResult.reboot()
        return ApplyResult.ok()
