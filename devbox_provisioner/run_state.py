from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import RunStateError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


@dataclass
class RunState:
    """Progress through one convergence run, persisted between processes."""

    completed: List[str] = field(default_factory=list)
    pending: List[str] = field(default_factory=list)
    reboot_requested: bool = False
    last_error: Optional[Dict[str, Any]] = None
    updated_at: Optional[str] = None

    def mark_completed(self, name: str) -> None:
        if name in self.pending:
            self.pending.remove(name)
        if name not in self.completed:
            self.completed.append(name)

    def is_completed(self, name: str) -> bool:
        return name in self.completed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": SCHEMA_VERSION,
            "completed": list(self.completed),
            "pending": list(self.pending),
            "reboot_requested": self.reboot_requested,
            "last_error": self.last_error,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunState":
        completed = data.get("completed") or []
        pending = data.get("pending") or []
        if not isinstance(completed, list) or not all(isinstance(n, str) for n in completed):
            raise RunStateError("run state 'completed' must be a list of resource names")
        if not isinstance(pending, list) or not all(isinstance(n, str) for n in pending):
            raise RunStateError("run state 'pending' must be a list of resource names")

        last_error = data.get("last_error")
        if last_error is not None and not isinstance(last_error, dict):
            raise RunStateError("run state 'last_error' must be an object or null")

        return cls(
            completed=list(completed),
            pending=list(pending),
            reboot_requested=bool(data.get("reboot_requested", False)),
            last_error=last_error,
            updated_at=data.get("updated_at"),
        )


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to JSON for unknown extensions.
    return "json"


def _yaml():
    try:
        import yaml  # type: ignore
    except Exception as e:  # pragma: no cover
        raise RuntimeError(
            "YAML run state requested but PyYAML is not available. "
            "Use a .json state path or install PyYAML."
        ) from e
    return yaml


class RunStateStore:
    """Run state on disk, written atomically (temp file + rename)."""

    def __init__(self, path: str) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Optional[RunState]:
        if not self.path.exists():
            return None

        text = self.path.read_text(encoding="utf-8")
        if _detect_format(self.path) == "json":
            try:
                data = json.loads(text)
            except ValueError as e:
                raise RunStateError(f"Cannot parse run state {self.path}: {e}") from e
        else:
            yaml = _yaml()
            try:
                data = yaml.safe_load(text)
            except yaml.YAMLError as e:
                raise RunStateError(f"Cannot parse run state {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise RunStateError(f"Run state must be an object/dict, got {type(data).__name__}: {self.path}")

        return RunState.from_dict(data)

    def save(self, state: RunState) -> None:
        state.updated_at = datetime.now(timezone.utc).isoformat()
        doc = state.to_dict()

        if _detect_format(self.path) == "json":
            content = json.dumps(doc, indent=2, sort_keys=True) + "\n"
        else:
            content = _yaml().safe_dump(doc, sort_keys=False)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(suffix=".tmp", prefix=self.path.stem + "_", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

        logger.debug("Saved run state to %s (completed=%d pending=%d)", self.path, len(state.completed), len(state.pending))

    def clear(self) -> None:
        try:
            self.path.unlink()
            logger.info("Removed run state %s", self.path)
        except FileNotFoundError:
            pass
