from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from .env import PATHS

DEFAULT_LOG_PATH = PATHS.log_default
FALLBACK_LOG_NAME = "devbox-provisioner.log"


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    level: int = logging.INFO,
    also_console: bool = True,
) -> str:
    """Configure root logging for a provisioning run.

    Every status line and command goes to the log file. If the requested
    location is not writable (no admin rights on %PROGRAMDATA%, say) the log
    goes to the working directory instead.

    Returns the actual file path being used.
    """

    logger = logging.getLogger()
    logger.setLevel(level)

    # Avoid duplicate handlers if configure_logging() is called multiple times.
    if getattr(logger, "_devbox_configured", False):
        return getattr(logger, "_devbox_log_path", log_path)

    handlers: list[logging.Handler] = []

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    file_handler: Optional[logging.Handler] = None
    try:
        Path(os.path.dirname(log_path) or ".").mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        chosen_path = log_path
    except OSError:
        fallback = str(Path.cwd() / FALLBACK_LOG_NAME)
        file_handler = logging.FileHandler(fallback, encoding="utf-8")
        chosen_path = fallback
    file_handler.setFormatter(fmt)
    handlers.append(file_handler)

    if also_console:
        console = logging.StreamHandler()
        console.setFormatter(fmt)
        handlers.append(console)

    for h in handlers:
        logger.addHandler(h)

    setattr(logger, "_devbox_configured", True)
    setattr(logger, "_devbox_log_path", chosen_path)

    logging.getLogger(__name__).info(
        "Logging initialized (requested=%s, actual=%s)", log_path, chosen_path
    )
    return chosen_path
