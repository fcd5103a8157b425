# src/wpstack/observers/dispatcher.py
from __future__ import annotations

import logging
from typing import List, Optional

from .events import ProgressEvent
from .interface import Observer

log = logging.getLogger("wpstack")


class EventBus:
    def __init__(self, observers: Optional[List[Observer]] = None):
        self._observers = observers or []

    def emit(self, event: ProgressEvent) -> None:
        for ob in self._observers:
            try:
                ob.notify(event)
            except Exception as e:
                # observers must not break installs
                log.debug("observer %s failed: %s", type(ob).__name__, e)
