from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


def _data_root() -> Path:
    base = os.environ.get("PROGRAMDATA") or os.environ.get("LOCALAPPDATA") or str(Path.home())
    return Path(base) / "devbox-provisioner"


@dataclass(frozen=True)
class Paths:
    root: Path = field(default_factory=_data_root)

    @property
    def state_default(self) -> str:
        return str(self.root / "run-state.json")

    @property
    def log_default(self) -> str:
        return str(self.root / "provision.log")

    @property
    def lock_default(self) -> str:
        return str(self.root / "provision.lock")


PATHS = Paths()
