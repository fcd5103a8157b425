# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/wpstack/install/steps.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Union

from wpstack.errors import OptionalStageFailure, StageError, WpStackError
from wpstack.observers.events import ProgressEvent, Stage, Status
from wpstack.observers.sinks import ProgressSink
from wpstack.utils.ssh_runner import SSHRunner

log = logging.getLogger("wpstack")


@dataclass
class StepResult:
    message: str
    detail: Optional[str] = None
    ok: bool = True


Action = Callable[[], Union[None, str, StepResult]]


class Reporter:
    """
    Installer-side handle on a ProgressSink.

    Once the sink reports itself unwritable (or raises on write) no further
    events are sent and the run carries on. Every event is still kept in
    ``history``.
    """

    def __init__(self, sink: ProgressSink, run_id: Optional[str] = None):
        self.sink = sink
        self.run_id = run_id
        self.history: List[ProgressEvent] = []
        self._detached = False

    @property
    def detached(self) -> bool:
        return self._detached

    def emit(
        self,
        stage: Stage,
        status: Status,
        message: str,
        detail: Optional[str] = None,
        result: Optional[dict] = None,
    ) -> ProgressEvent:
        ev = ProgressEvent(
            stage=stage, status=status, message=message,
            detail=detail, result=result, run_id=self.run_id,
        )
        self.history.append(ev)
        if self._detached:
            return ev
        if not self.sink.writable:
            self._detach("sink reports unwritable")
            return ev
        try:
            self.sink.emit(ev)
        except Exception as e:
            # whatever the reader raised, the run goes on
            self._detach(f"{type(e).__name__}: {e}")
        return ev

    def _detach(self, why: str) -> None:
        self._detached = True
        log.info("Progress reader went away (%s); continuing without events", why)


def run_step(
    reporter: Reporter,
    stage: Stage,
    label: str,
    action: Action,
    *,
    done: Optional[str] = None,
    best_effort: bool = False,
    hint: Optional[str] = None,
) -> StepResult:
    """
    Run one stage: a ``running`` event, the action, then exactly one
    terminal event.

    Mandatory stages re-raise failures as StageError annotated with
    ``label``. Best-effort stages report ``completed`` with the failure in
    ``detail`` and return a result with ``ok=False``.
    """
    reporter.emit(stage, Status.RUNNING, f"{label}...")
    log.info("[%s] %s", stage, label)
    try:
        ret = action()
    except WpStackError as e:
        if best_effort:
            caveat = OptionalStageFailure(stage.value, str(e))
            log.warning("[%s] best-effort stage failed: %s", stage, caveat.detail)
            detail = f"{caveat.detail}; {hint}" if hint else caveat.detail
            res = StepResult(message=f"{label} skipped", detail=detail, ok=False)
            reporter.emit(stage, Status.COMPLETED, res.message, res.detail)
            return res
        reporter.emit(stage, Status.FAILED, f"{label} failed", str(e))
        raise StageError(stage.value, label, e) from e
    except Exception as e:
        # unexpected errors are never downgraded, even in best-effort stages
        reporter.emit(stage, Status.FAILED, f"{label} failed", str(e))
        raise StageError(stage.value, label, e) from e

    if isinstance(ret, StepResult):
        res = ret
    else:
        res = StepResult(message=ret or done or f"{label} done")
    reporter.emit(stage, Status.COMPLETED, res.message, res.detail)
    return res


def ensure_package(
    runner: SSHRunner,
    name: str,
    check_cmd: str,
    install_cmd: str,
    enable_cmd: Optional[str] = None,
    install_timeout: Optional[float] = None,
) -> bool:
    """
    Probe, install if absent, then make sure the service is enabled and
    running. Returns True if the package had to be installed.
    """
    installed = False
    if runner.succeeds(check_cmd):
        log.info("%s already present, skipping install", name)
    else:
        runner.check(install_cmd, timeout=install_timeout, context=f"Installing {name}")
        installed = True
    if enable_cmd:
        runner.check(enable_cmd, context=f"Starting {name}")
    return installed
