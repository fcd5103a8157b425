# src/wpstack/observers/events.py

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class Stage(str, Enum):
    """Fixed vocabulary of stage identifiers, in run order."""

    CONNECTING = "connecting"
    SYSTEM_UPDATE = "system-update"
    NGINX = "nginx"
    DATABASE = "database"
    PHP = "php"
    DB_CONFIG = "db-config"
    WORDPRESS = "wordpress"
    WP_CONFIG = "wp-config"
    NGINX_CONFIG = "nginx-config"
    WP_INSTALL = "wp-install"
    FIREWALL = "firewall"
    SECURITY = "security"
    SSL = "ssl"
    # run-level terminal records
    COMPLETE = "complete"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


class Status(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def new_run_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class ProgressEvent:
    stage: Stage
    status: Status
    message: str
    detail: Optional[str] = None
    # completion record, only on the final Stage.COMPLETE event
    result: Optional[Dict[str, Any]] = None
    run_id: Optional[str] = None
    ts: str = field(default_factory=_now)

    @property
    def ends_run(self) -> bool:
        return self.stage in (Stage.COMPLETE, Stage.ERROR)

    def to_wire(self) -> Dict[str, Any]:
        """The ``{step, status, message, details?, result?}`` record."""
        rec: Dict[str, Any] = {
            "step": self.stage.value,
            "status": self.status.value,
            "message": self.message,
        }
        if self.detail is not None:
            rec["details"] = self.detail
        if self.result is not None:
            rec["result"] = self.result
        return rec
