from __future__ import annotations

import argparse
import json
import logging
import os
from typing import Callable, List, Optional

from .config import ProvisionConfig, load_config
from .engine import Outcome, RunResult, run_convergence
from .errors import CommandError, ConfigurationError, LockError, RunStateError
from .graph import DependencyGraph
from .lock import RunLock
from .logging_utils import configure_logging
from .registry import ResourceRegistry
from .resources import build_registry
from .resume import request_reboot, schedule_resume
from .run_state import RunStateStore

logger = logging.getLogger(__name__)

EXIT_CONVERGED = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_REBOOT_PENDING = 3010

RegistryFactory = Callable[..., ResourceRegistry]


def _resume_args(
    *,
    config_path: Optional[str],
    state_path: str,
    log_path: str,
    lock_path: str,
) -> List[str]:
    args = [
        "--state",
        os.path.abspath(state_path),
        "--log",
        os.path.abspath(log_path),
        "--lock",
        os.path.abspath(lock_path),
    ]
    if config_path:
        args = ["--config", os.path.abspath(config_path)] + args
    return args


def run(
    *,
    config_path: Optional[str] = None,
    state_path: Optional[str] = None,
    log_path: Optional[str] = None,
    lock_path: Optional[str] = None,
    dry_run: bool = False,
    fresh: bool = False,
    registry_factory: RegistryFactory = build_registry,
) -> RunResult:
    """Converge the workstation, persisting run state for resume after reboot."""

    cfg: ProvisionConfig = load_config(config_path)
    state_path = state_path or cfg.state_path
    log_path = log_path or cfg.log_path
    lock_path = lock_path or cfg.lock_path

    actual_log_path = configure_logging(log_path=log_path)
    logger.info("Provisioning (dry_run=%s, state=%s, log=%s)", dry_run, state_path, actual_log_path)

    # Declaration problems surface here, before anything is tested or applied.
    graph = DependencyGraph.build(registry_factory(cfg, dry_run=dry_run))
    store = RunStateStore(state_path)

    with RunLock(lock_path):
        if fresh and not dry_run:
            logger.info("Discarding persisted run state (--fresh)")
            store.clear()

        try:
            result = run_convergence(graph=graph, store=store, dry_run=dry_run)
        except Exception:
            logger.exception("Provisioning failed")
            raise

        if result.outcome == Outcome.REBOOT_PENDING and not dry_run:
            try:
                schedule_resume(
                    _resume_args(
                        config_path=config_path,
                        state_path=state_path,
                        log_path=log_path,
                        lock_path=lock_path,
                    )
                )
                if cfg.automatic_reboot:
                    request_reboot(cfg.reboot_delay_seconds)
            except CommandError:
                logger.exception(
                    "Could not schedule the restart for %s. Restart Windows and run devbox-provisioner "
                    "again by hand to resume.",
                    result.reboot_resource,
                )
                raise
            if not cfg.automatic_reboot:
                logger.warning(
                    "%s needs a restart. Restart Windows; provisioning resumes at next logon.",
                    result.reboot_resource,
                )

    if result.error is not None:
        logger.error("%s", result.error)
    return result


def show_status(state_path: str) -> int:
    state = RunStateStore(state_path).load()
    if state is None:
        print("no run in progress")
    else:
        print(json.dumps(state.to_dict(), indent=2))
    return EXIT_CONVERGED


def exit_code_for(result: RunResult) -> int:
    if result.outcome == Outcome.CONVERGED:
        return EXIT_CONVERGED
    if result.outcome == Outcome.REBOOT_PENDING:
        return EXIT_REBOOT_PENDING
    return EXIT_FAILED


def main(argv: Optional[list[str]] = None, *, registry_factory: RegistryFactory = build_registry) -> int:
    p = argparse.ArgumentParser(
        prog="devbox-provisioner",
        description="Converge this Windows workstation to a WSL2 + Docker development setup.",
    )
    p.add_argument("--config", default=None, help="Path to provisioning config (yaml)")
    p.add_argument("--state", default=None, help="Path to run state (json|yaml)")
    p.add_argument("--log", default=None, help="Path to provisioning log")
    p.add_argument("--lock", default=None, help="Path to the run lock file")
    p.add_argument("--dry-run", action="store_true", help="Test every resource but apply nothing")
    p.add_argument("--fresh", action="store_true", help="Discard persisted run state before running")
    p.add_argument("--status", action="store_true", help="Print persisted run state and exit")

    args = p.parse_args(argv)

    try:
        if args.status:
            cfg = load_config(args.config)
            with RunLock(args.lock or cfg.lock_path):
                return show_status(args.state or cfg.state_path)

        result = run(
            config_path=args.config,
            state_path=args.state,
            log_path=args.log,
            lock_path=args.lock,
            dry_run=bool(args.dry_run),
            fresh=bool(args.fresh),
            registry_factory=registry_factory,
        )
    except (ConfigurationError, RunStateError, LockError, FileNotFoundError) as e:
        logger.error("%s", e)
        return EXIT_CONFIG
    except CommandError:
        # Already logged by run(); the run state still records the pending reboot.
        return EXIT_FAILED

    return exit_code_for(result)


if __name__ == "__main__":
    raise SystemExit(main())
