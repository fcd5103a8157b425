# src/wpstack/observers/jsonfile.py
from __future__ import annotations

import json
from pathlib import Path

from .events import ProgressEvent


class JsonFileObserver:
    """
    Appends one JSON record per event. The completion record carries
    generated credentials, so the file is created owner-readable only.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch(mode=0o600, exist_ok=True)

    def notify(self, event: ProgressEvent) -> None:
        rec = event.to_wire()
        rec["ts"] = event.ts
        if event.run_id:
            rec["run_id"] = event.run_id
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(rec) + "\n")
