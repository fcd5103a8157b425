# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/wpstack/errors.py

from __future__ import annotations

from typing import Optional


class WpStackError(RuntimeError):
    """Base class for provisioning failures."""


class InputError(WpStackError):
    """Raised when an installation request does not validate."""


# ---------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------
class SSHConnectionError(WpStackError):
    """Opening the SSH session failed. Fatal: nothing has run yet."""


class AuthError(SSHConnectionError):
    pass


class NetworkError(SSHConnectionError):
    pass


class ConnectTimeout(SSHConnectionError):
    pass


class SessionUnavailable(WpStackError):
    """A command was issued on a session that is already closed."""


# ---------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------
class ExecutionError(WpStackError):
    """The transport failed while running a command."""


class CommandFailure(WpStackError):
    def __init__(self, context: str, exit_code: Optional[int], excerpt: str):
        self.context = context
        self.exit_code = exit_code
        self.excerpt = excerpt
        super().__init__(f"{context}: {excerpt}")


class CommandTimeout(CommandFailure):
    def __init__(self, context: str, timeout: float):
        self.timeout = timeout
        super().__init__(context, None, f"timed out after {timeout:g}s")


class ConfigValidationFailure(CommandFailure):
    """Rendered configuration failed its dry-run check."""


# ---------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------
class StageError(WpStackError):
    """
    A mandatory stage failed. The cause is chained via ``raise ... from``;
    ``str()`` carries the human context of the stage.
    """

    def __init__(self, stage: str, context: str, cause: BaseException):
        self.stage = stage
        self.context = context
        self.cause = cause
        super().__init__(f"{context} failed: {cause}")


class OptionalStageFailure(WpStackError):
    """A best-effort stage failed. Recorded as a caveat, never propagated."""

    def __init__(self, stage: str, detail: str):
        self.stage = stage
        self.detail = detail
        super().__init__(f"{stage}: {detail}")
