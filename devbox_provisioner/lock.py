from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Optional

from .errors import LockError

logger = logging.getLogger(__name__)


class RunLock:
    """Exclusive lock file so only one provisioning run touches the host.

    The file holds "<pid> <epoch>" of the holder and is removed on release.
    A lock left behind by a killed process has to be deleted by hand.
    """

    def __init__(self, path: str) -> None:
        self.path = Path(path)
        self._fd: Optional[int] = None

    def acquire(self) -> None:
        if self._fd is not None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(str(self.path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            holder = self._read_holder()
            raise LockError(
                f"Another provisioning run holds {self.path} ({holder}). "
                "If no run is active, delete the lock file and retry."
            ) from None
        try:
            os.write(fd, f"{os.getpid()} {int(time.time())}\n".encode("ascii"))
        except OSError:
            # An empty lock file would block every later run.
            os.close(fd)
            self.path.unlink(missing_ok=True)
            raise
        self._fd = fd
        logger.debug("Acquired run lock %s", self.path)

    def release(self) -> None:
        if self._fd is None:
            return
        os.close(self._fd)
        self._fd = None
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        logger.debug("Released run lock %s", self.path)

    def _read_holder(self) -> str:
        try:
            parts = self.path.read_text(encoding="ascii").split()
        except (OSError, UnicodeDecodeError):
            return "holder unknown"
        if len(parts) >= 2 and parts[1].isdigit():
            started = time.strftime("%Y-%m-%dT%H:%M:%S", time.localtime(int(parts[1])))
            return f"pid {parts[0]}, since {started}"
        return "holder unknown"

    def __enter__(self) -> "RunLock":
        self.acquire()
        return self

    def __exit__(self, *exc) -> None:
        self.release()
