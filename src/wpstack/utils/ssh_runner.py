# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import List, Optional

import paramiko

from wpstack.errors import CommandFailure, CommandTimeout, ExecutionError
from wpstack.utils.ssh import RemoteSession

log = logging.getLogger("wpstack")

_POLL_INTERVAL = 0.05
_CHUNK = 32768


@dataclass(frozen=True)
class CommandOutcome:
    stdout: str
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def diagnostic(self) -> str:
        """stderr, else stdout, else the bare exit code. Never empty."""
        return self.stderr or self.stdout or f"exit code {self.exit_code}"

    def contains(self, needle: str) -> bool:
        return needle in self.stdout or needle in self.stderr


class SSHRunner:
    """
    Runs shell commands over one RemoteSession.

    Each call is bounded by its own timeout. A timed-out command may still be
    running remotely; its channel is closed and the caller decides whether
    the session is still worth using.
    """

    def __init__(self, session: RemoteSession, default_timeout: float = 120.0):
        self.session = session
        self.default_timeout = default_timeout
        self.history: List[str] = []

    def run(
        self,
        cmd: str,
        timeout: Optional[float] = None,
        context: Optional[str] = None,
        secret: bool = False,
    ) -> CommandOutcome:
        """
        Run ``cmd`` and return its outcome whatever the exit code.

        ``context`` labels the command in logs and errors. With ``secret=True``
        the command text itself is never logged.
        """
        timeout = self.default_timeout if timeout is None else timeout
        label = context or cmd
        self.history.append(cmd)
        log.debug("$ %s", label if secret else cmd)

        try:
            _stdin, stdout, _stderr = self.session.exec_command(cmd, timeout=timeout)
        except (paramiko.SSHException, OSError) as e:
            raise ExecutionError(f"{label}: could not start command: {e}") from e

        chan = stdout.channel
        out: List[bytes] = []
        err: List[bytes] = []
        deadline = time.monotonic() + timeout

        try:
            while True:
                drained = self._drain(chan, out, err)
                if chan.exit_status_ready() and not drained:
                    break
                if time.monotonic() >= deadline:
                    chan.close()
                    log.warning("%s timed out after %gs", label, timeout)
                    raise CommandTimeout(label, timeout)
                if not drained:
                    time.sleep(_POLL_INTERVAL)
            self._drain(chan, out, err)
            code = chan.recv_exit_status()
        except (paramiko.SSHException, OSError) as e:
            raise ExecutionError(f"{label}: transport failure: {e}") from e

        # paramiko reports -1 when the server closed the channel without an exit status
        if code is None or code < 0:
            raise ExecutionError(f"{label}: remote end did not report an exit status")

        outcome = CommandOutcome(
            stdout=b"".join(out).decode("utf-8", errors="replace").strip(),
            stderr=b"".join(err).decode("utf-8", errors="replace").strip(),
            exit_code=code,
        )
        log.debug("  -> exit %d (%s)", code, label)
        return outcome

    def check(
        self,
        cmd: str,
        timeout: Optional[float] = None,
        context: Optional[str] = None,
        secret: bool = False,
    ) -> CommandOutcome:
        """Like run(), but a non-zero exit raises CommandFailure."""
        res = self.run(cmd, timeout=timeout, context=context, secret=secret)
        if not res.ok:
            raise CommandFailure(context or cmd, res.exit_code, res.diagnostic())
        return res

    def succeeds(self, cmd: str, timeout: Optional[float] = None) -> bool:
        """Read-only probe: True if ``cmd`` exits 0."""
        return self.run(cmd, timeout=timeout).ok

    def write_file(
        self,
        path: str,
        content: str,
        marker: str = "WPSTACK_EOF",
        context: Optional[str] = None,
        secret: bool = False,
        timeout: Optional[float] = None,
    ) -> CommandOutcome:
        """
        Write ``content`` to ``path`` as root through a quoted here-document.

        The quoted marker disables expansion in the remote shell, and the file
        lands in a sibling temp path first so ``path`` is replaced in one
        ``mv``.
        """
        if any(line == marker for line in content.splitlines()):
            raise ValueError(f"content contains the here-document marker {marker!r}")
        tmp = f"{path}.wpstack-tmp"
        cmd = (
            f"sudo tee {tmp} > /dev/null << '{marker}' && sudo mv -f {tmp} {path}\n"
            f"{content}\n"
            f"{marker}"
        )
        return self.check(cmd, timeout=timeout, context=context or f"Writing {path}", secret=secret)

    @staticmethod
    def _drain(chan, out: List[bytes], err: List[bytes]) -> bool:
        got = False
        while chan.recv_ready():
            data = chan.recv(_CHUNK)
            if not data:
                break
            out.append(data)
            got = True
        while chan.recv_stderr_ready():
            data = chan.recv_stderr(_CHUNK)
            if not data:
                break
            err.append(data)
            got = True
        return got
