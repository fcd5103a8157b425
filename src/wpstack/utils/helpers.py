# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import re
import secrets
import shlex


def generate_password(length: int = 32) -> str:
    """
    URL-safe random string of exactly ``length`` characters.
    Each character carries 6 bits, drawn from the OS CSPRNG.
    """
    token = ""
    while len(token) < length:
        token += secrets.token_urlsafe(length)
    return token[:length]


def sanitize_domain(domain: str) -> str:
    return re.sub(r"[^a-zA-Z0-9.-]", "", domain).lower()


def db_identifier(domain: str, prefix: str = "wp_", limit: int = 16) -> str:
    """
    Derive a database/user identifier from a domain.

    >>> db_identifier("my-blog.example.com")
    'wp_my_blog_examp'
    """
    body = re.sub(r"[^a-zA-Z0-9]", "_", sanitize_domain(domain))
    return (prefix + body)[:limit]


def shell_quote(value: str) -> str:
    return shlex.quote(value)
