# src/wpstack/observers/logger.py
from __future__ import annotations

import logging
from typing import Optional

from .events import ProgressEvent, Status


class LoggerObserver:
    def __init__(self, logger: Optional[logging.Logger] = None):
        self.log = logger or logging.getLogger("wpstack")

    def notify(self, event: ProgressEvent) -> None:
        level = logging.ERROR if event.status is Status.FAILED else logging.INFO
        if event.status is Status.RUNNING:
            level = logging.DEBUG
        suffix = f" ({event.detail})" if event.detail else ""
        self.log.log(level, "[%s] %s: %s%s", event.stage, event.status, event.message, suffix)
