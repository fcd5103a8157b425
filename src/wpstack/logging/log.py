# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/wpstack/logging/log.py

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from wpstack.observers.events import new_run_id

KEEP_LOGS = 20
_FILE_FORMAT = "%(asctime)s | %(levelname)-7s | %(run_id)s | %(message)s"
_CONSOLE_FORMAT = "%(levelname)s: %(message)s"


class _RunIdFilter(logging.Filter):
    def __init__(self, run_id: str):
        super().__init__()
        self.short = run_id[:8]

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = self.short
        return True


def _prune(base_dir: Path, name: str, keep: int) -> None:
    old = sorted(base_dir.glob(f"{name}-*.log"), key=lambda p: p.stat().st_mtime)
    for path in (old[:-keep] if keep else old):
        path.unlink(missing_ok=True)


def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = "wpstack",
    verbose: bool = False,
    keep: int = KEEP_LOGS,
) -> tuple[logging.Logger, str, Path]:
    """
    One log file per run, holding every remote command label and exit code.

    The console only shows warnings (stage progress has its own observer)
    unless ``verbose``. Older run logs beyond ``keep`` are removed. Returns
    ``(logger, run_id, log_path)``; the run id also tags every file record
    and the progress events of the run.
    """
    run_id = new_run_id()

    base_dir = Path(base_dir) if base_dir else Path.home() / ".wpstack" / "logs"
    base_dir.mkdir(parents=True, exist_ok=True)
    _prune(base_dir, name, max(keep - 1, 0))

    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    log_path = base_dir / f"{name}-{stamp}-{run_id[:8]}.log"
    # generated credentials never reach the log, but host details do
    log_path.touch(mode=0o600)
    os.chmod(log_path, 0o600)

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()
    logger.filters.clear()
    logger.propagate = False
    logger.addFilter(_RunIdFilter(run_id))

    to_file = logging.FileHandler(log_path, encoding="utf-8")
    to_file.setLevel(logging.DEBUG)
    to_file.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    to_console = logging.StreamHandler()
    to_console.setLevel(logging.DEBUG if verbose else logging.WARNING)
    to_console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))

    logger.addHandler(to_file)
    logger.addHandler(to_console)

    # paramiko's transport chatter only with --debug
    logging.getLogger("paramiko").setLevel(logging.DEBUG if verbose else logging.WARNING)

    logger.debug("run %s logging to %s", run_id, log_path)
    return logger, run_id, log_path
