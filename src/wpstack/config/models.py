# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/wpstack/config/models.py

from __future__ import annotations

import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator

from .settings import Settings

DOMAIN_PATTERN = re.compile(
    r"^(?=.{1,253}$)(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$"
)
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
WP_USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9._-]{1,60}$")


def normalize_host(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    host = value.strip()
    host = re.sub(r"^https?://", "", host, flags=re.IGNORECASE)
    host = re.sub(r"/.*$", "", host)
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host.strip()


def normalize_domain(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    domain = value.strip().lower()
    domain = re.sub(r"^https?://", "", domain)
    domain = re.sub(r"/.*$", "", domain)
    return domain.rstrip(".")


def _settings(info: ValidationInfo) -> Settings:
    ctx = info.context or {}
    return ctx.get("settings") or Settings.default()


class ConnectionSpec(BaseModel):
    """
    How to reach the target host. Exactly one credential is kept.
    """
    model_config = ConfigDict(frozen=True)

    host: str
    port: int = Field(default=22, ge=1, le=65535)
    username: str
    password: Optional[str] = None
    private_key: Optional[str] = None

    @field_validator("host", mode="before")
    @classmethod
    def _host(cls, v: Any) -> str:
        host = normalize_host(v)
        if not host or re.search(r"\s", host):
            raise ValueError("invalid host value")
        return host

    @field_validator("port", mode="before")
    @classmethod
    def _port(cls, v: Any) -> Any:
        return 22 if v in (None, "") else v

    @field_validator("username", mode="before")
    @classmethod
    def _username(cls, v: Any) -> str:
        name = v.strip() if isinstance(v, str) else ""
        if not name:
            raise ValueError("username is required")
        return name

    @field_validator("private_key", mode="before")
    @classmethod
    def _private_key(cls, v: Any) -> Optional[str]:
        # keys pasted into a single-line field arrive with literal "\n"
        if not isinstance(v, str):
            return None
        key = v.replace("\\n", "\n").strip()
        return key or None

    @model_validator(mode="before")
    @classmethod
    def _prefer_key(cls, data: Any) -> Any:
        if isinstance(data, dict):
            key = data.get("private_key")
            if isinstance(key, str) and key.replace("\\n", "\n").strip():
                data = {**data, "password": None}
        return data

    @model_validator(mode="after")
    def _one_credential(self) -> "ConnectionSpec":
        if not self.private_key and not self.password:
            raise ValueError("either a password or a private key is required")
        return self

    @property
    def auth_method(self) -> str:
        return "key" if self.private_key else "password"

    def __repr__(self) -> str:
        return f"ConnectionSpec(host={self.host}, port={self.port}, user={self.username}, auth={self.auth_method})"

    __str__ = __repr__


class SiteParameters(BaseModel):
    model_config = ConfigDict(frozen=True, validate_default=True)

    domain: str
    site_title: str = "My WordPress Site"
    admin_user: str = "admin"
    admin_email: str = ""
    php_version: str = ""
    enable_ssl: bool = False

    @field_validator("domain", mode="before")
    @classmethod
    def _domain(cls, v: Any) -> str:
        domain = normalize_domain(v)
        if not DOMAIN_PATTERN.match(domain):
            raise ValueError("please provide a valid domain name (example.com)")
        return domain

    @field_validator("site_title", "admin_user", mode="before")
    @classmethod
    def _strip(cls, v: Any, info: ValidationInfo) -> Any:
        if isinstance(v, str) and v.strip():
            return v.strip()
        return cls.model_fields[info.field_name].default

    @field_validator("admin_user")
    @classmethod
    def _admin_user(cls, v: str) -> str:
        if not WP_USERNAME_PATTERN.match(v):
            raise ValueError('admin username may only contain letters, numbers, ".", "_" or "-"')
        return v

    @field_validator("php_version", mode="before")
    @classmethod
    def _php_version(cls, v: Any, info: ValidationInfo) -> str:
        settings = _settings(info)
        if v in (None, ""):
            return settings.default_php_version
        candidate = str(v).strip()
        if candidate not in settings.supported_php_versions:
            raise ValueError(
                f"unsupported PHP version {candidate!r}; "
                f"choose one of {', '.join(settings.supported_php_versions)}"
            )
        return candidate

    @field_validator("enable_ssl", mode="before")
    @classmethod
    def _enable_ssl(cls, v: Any) -> bool:
        # only an explicit true turns TLS on
        return v is True

    @field_validator("admin_email", mode="before")
    @classmethod
    def _admin_email(cls, v: Any, info: ValidationInfo) -> str:
        email = v.strip() if isinstance(v, str) else ""
        if not email and "domain" in info.data:
            email = f"admin@{info.data['domain']}"
        if not EMAIL_PATTERN.match(email):
            raise ValueError("please provide a valid admin email address")
        return email


class InstallRequest(BaseModel):
    connection: ConnectionSpec
    site: SiteParameters
