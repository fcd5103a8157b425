# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Optional

from wpstack.config.models import ConnectionSpec
from wpstack.config.settings import Settings
from wpstack.errors import WpStackError
from wpstack.utils.ssh import RemoteSession, open_session
from wpstack.utils.ssh_runner import SSHRunner

from .models import ProbeResult, ServerInfo

log = logging.getLogger("wpstack")

# read-only and independent of each other, so they may run side by side
HOST_QUERIES: Dict[str, str] = {
    "os": "lsb_release -ds 2>/dev/null || grep PRETTY_NAME /etc/os-release | cut -d= -f2 | tr -d '\"'",
    "memory": "free -h | awk '/^Mem:/{print $2}'",
    "disk_free": "df -h / | awk 'NR==2{print $4}'",
}


def probe(
    connection: ConnectionSpec,
    settings: Optional[Settings] = None,
    session_factory=open_session,
) -> ProbeResult:
    """
    Check that the host is reachable with these credentials and report what
    it is running.
    """
    settings = settings or Settings.default()
    session: Optional[RemoteSession] = None
    try:
        session = session_factory(connection, settings)
        runner = SSHRunner(session, default_timeout=settings.timeouts.quick)
        with ThreadPoolExecutor(max_workers=len(HOST_QUERIES)) as pool:
            futures = {key: pool.submit(runner.run, cmd) for key, cmd in HOST_QUERIES.items()}
            facts = {key: (fut.result().stdout or "Unknown") for key, fut in futures.items()}
    except WpStackError as e:
        log.warning("[%s] probe failed: %s", connection.host, e)
        return ProbeResult(success=False, error=str(e))
    finally:
        if session is not None:
            session.close()

    info = ServerInfo(os=facts["os"], memory=facts["memory"], disk_free=facts["disk_free"])
    log.info("[%s] %s, %s RAM, %s free", connection.host, info.os, info.memory, info.disk_free)
    return ProbeResult(success=True, server=info)
