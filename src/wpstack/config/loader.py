# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/wpstack/config/loader.py

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from ..errors import InputError
from .models import InstallRequest
from .settings import Settings

log = logging.getLogger("wpstack")


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    try:
        raw = path.read_text()
    except OSError as e:
        raise InputError(f"Cannot read request file {path}: {e.strerror or e}") from e
    expanded = os.path.expandvars(raw)
    try:
        return yaml.safe_load(expanded) or {}
    except yaml.YAMLError as e:
        raise InputError(f"{path}: not valid YAML: {e}") from e


def _format_errors(exc: ValidationError) -> str:
    lines = []
    for err in exc.errors():
        where = ".".join(str(p) for p in err["loc"]) or "request"
        msg = err["msg"].removeprefix("Value error, ")
        lines.append(f"{where}: {msg}")
    return "\n".join(lines)


def load_request(path: str | Path, settings: Optional[Settings] = None) -> InstallRequest:
    """
    Load and validate an installation request.

    The file mirrors the two halves of a request::

        connection:
          host: 203.0.113.10
          username: ubuntu
          private_key: ${WPSTACK_SSH_KEY}
        site:
          domain: example.com
          enable_ssl: true

    Credentials are best kept out of the file and referenced as ``${ENV}``.
    """
    path = Path(path)
    if not path.is_file():
        raise InputError(f"Request file not found: {path}")

    data = _load_yaml(path)
    if not isinstance(data, dict):
        raise InputError(f"{path}: expected a mapping with 'connection' and 'site'")

    # anything that is not a mapping is left for the model to reject
    conn = data.get("connection")
    if isinstance(conn, dict) and conn.get("private_key_file"):
        conn = dict(conn)
        key_file = Path(conn.pop("private_key_file")).expanduser()
        try:
            conn["private_key"] = key_file.read_text()
        except OSError as e:
            raise InputError(f"{path}: cannot read private_key_file {key_file}: {e.strerror or e}") from e
        data = {**data, "connection": conn}

    try:
        req = InstallRequest.model_validate(
            data, context={"settings": settings or Settings.default()}
        )
    except ValidationError as e:
        raise InputError(f"Invalid request {path}:\n{_format_errors(e)}") from e

    log.debug("Loaded request for %s on %s", req.site.domain, req.connection)
    return req
