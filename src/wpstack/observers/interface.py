# src/wpstack/observers/interface.py
from __future__ import annotations

from typing import Protocol

from .events import ProgressEvent


class Observer(Protocol):
    def notify(self, event: ProgressEvent) -> None: ...
