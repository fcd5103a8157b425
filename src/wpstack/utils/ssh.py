# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import io
import logging
import socket
from typing import Optional

import paramiko

from wpstack.config.models import ConnectionSpec
from wpstack.config.settings import Settings
from wpstack.errors import AuthError, ConnectTimeout, NetworkError, SessionUnavailable

log = logging.getLogger("wpstack")

_KEY_CLASSES = (
    paramiko.Ed25519Key,
    paramiko.RSAKey,
    paramiko.ECDSAKey,
)


class RemoteSession:
    """
    One authenticated SSH connection, owned by a single run.

    ``close()`` may be called any number of times; only the first call
    tears the transport down.
    """

    def __init__(self, client: paramiko.SSHClient, spec: ConnectionSpec):
        self.client = client
        self.spec = spec
        self.close_count = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def port(self) -> int:
        return self.spec.port

    def exec_command(self, command: str, timeout: Optional[float] = None):
        if self._closed:
            raise SessionUnavailable(f"Session to {self.spec.host} is closed")
        return self.client.exec_command(command, timeout=timeout)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.close_count += 1
        try:
            self.client.close()
        except (OSError, paramiko.SSHException) as e:
            log.debug("[%s] error while closing session: %s", self.spec.host, e)
        log.debug("[%s] session closed", self.spec.host)

    def __enter__(self) -> "RemoteSession":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def _is_timeout(exc: BaseException) -> bool:
    # paramiko reports banner and auth timeouts as SSHException / AuthenticationException
    if isinstance(exc.__context__, (socket.timeout, TimeoutError)):
        return True
    msg = str(exc).lower()
    return "timeout" in msg or "timed out" in msg


def load_private_key(material: str) -> paramiko.PKey:
    """Parse private key text, trying the key types in turn."""
    last_exc: Optional[Exception] = None
    for key_cls in _KEY_CLASSES:
        try:
            return key_cls.from_private_key(io.StringIO(material))
        except (paramiko.SSHException, ValueError) as e:
            last_exc = e
    raise AuthError(f"Unsupported or invalid private key: {last_exc}")


def open_session(
    spec: ConnectionSpec,
    settings: Optional[Settings] = None,
) -> RemoteSession:
    """
    Connect and authenticate, bounded by the connect ceiling.

    Any partially built client is closed before the error is raised.
    """
    settings = settings or Settings.default()
    ceiling = settings.timeouts.connect

    pkey = load_private_key(spec.private_key) if spec.private_key else None

    client = paramiko.SSHClient()
    client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

    log.info("[%s] connecting as %s (port %d, %s auth)", spec.host, spec.username, spec.port, spec.auth_method)
    try:
        client.connect(
            hostname=spec.host,
            port=spec.port,
            username=spec.username,
            password=spec.password if not pkey else None,
            pkey=pkey,
            timeout=ceiling,
            banner_timeout=ceiling,
            auth_timeout=ceiling,
            look_for_keys=False,
            allow_agent=False,
        )
    except paramiko.SSHException as e:
        client.close()
        if _is_timeout(e):
            raise ConnectTimeout(f"Timed out connecting to {spec.host}:{spec.port} after {ceiling:g}s: {e}") from e
        if not isinstance(e, paramiko.AuthenticationException):
            raise NetworkError(f"Could not connect to {spec.host}:{spec.port}: {e}") from e
        raise AuthError(f"Authentication failed for {spec.username}@{spec.host}: {e}") from e
    except (socket.timeout, TimeoutError) as e:
        client.close()
        raise ConnectTimeout(f"Timed out connecting to {spec.host}:{spec.port} after {ceiling:g}s") from e
    except OSError as e:
        client.close()
        raise NetworkError(f"Could not connect to {spec.host}:{spec.port}: {e}") from e

    transport = client.get_transport()
    if transport is None or not transport.is_active():
        client.close()
        raise NetworkError(f"Connection to {spec.host}:{spec.port} closed before it was ready")
    transport.set_keepalive(settings.timeouts.keepalive)

    log.info("[%s] connected", spec.host)
    return RemoteSession(client, spec)
