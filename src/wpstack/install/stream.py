# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Iterator, Optional

from wpstack.config.models import ConnectionSpec, SiteParameters
from wpstack.config.settings import Settings
from wpstack.observers.events import ProgressEvent, Stage, Status
from wpstack.observers.sinks import QueueSink
from wpstack.utils.ssh import open_session

from .orchestrator import install

log = logging.getLogger("wpstack")


def stream_installation(
    connection: ConnectionSpec,
    site: SiteParameters,
    settings: Optional[Settings] = None,
    timeout: Optional[float] = None,
    session_factory=open_session,
    run_id: Optional[str] = None,
) -> Iterator[ProgressEvent]:
    """
    Run an installation on a worker thread and yield its events as they
    arrive, ending with the run's terminal event.

    ``timeout`` (default ``settings.run_timeout``) is the outer ceiling of
    the request. When it elapses the reader lets go of the channel and a
    transport-level ``error`` event is yielded instead; the worker keeps
    going until the remote work is done, silently.
    """
    settings = settings or Settings.default()
    timeout = settings.run_timeout if timeout is None else timeout
    sink = QueueSink()

    worker = threading.Thread(
        target=install,
        args=(connection, site, sink),
        kwargs={"settings": settings, "session_factory": session_factory, "run_id": run_id},
        name=f"wpstack-install-{site.domain}",
    )
    worker.start()

    deadline = time.monotonic() + timeout
    try:
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                # closed first so the drain below is bounded
                sink.close()
                while True:
                    try:
                        ev = sink.get(timeout=0)
                    except queue.Empty:
                        break
                    yield ev
                    if ev.ends_run:
                        return
                log.error("Installation of %s exceeded %gs; no longer waiting", site.domain, timeout)
                yield ProgressEvent(
                    stage=Stage.ERROR,
                    status=Status.FAILED,
                    message=f"Installation did not finish within {timeout:g}s",
                    detail="transport",
                    run_id=run_id,
                )
                return
            try:
                ev = sink.get(timeout=min(remaining, 1.0))
            except queue.Empty:
                if worker.is_alive():
                    continue
                try:
                    ev = sink.get(timeout=0)
                except queue.Empty:
                    log.error("Installer stopped without a terminal event")
                    return
            yield ev
            if ev.ends_run:
                return
    finally:
        # also reached when the consumer stops iterating early
        sink.close()
