# src/wpstack/install/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ProvisioningState:
    """
    Values carried between stages of one run. Only one stage touches it at a
    time.
    """
    domain: str
    install_dir: str
    php_version: str
    fpm_socket: str
    db_name: str
    db_user: str
    db_password: str
    admin_password: str
    ssl_enabled: bool = False
    already_installed: bool = False
    inline_fastcgi: bool = False
    skipped: List[str] = field(default_factory=list)


@dataclass
class InstallationResult:
    success: bool
    domain: str = ""
    admin_user: str = ""
    admin_password: str = ""
    db_name: str = ""
    db_user: str = ""
    db_password: str = ""
    install_dir: str = ""
    ssl_requested: bool = False
    ssl_enabled: bool = False
    skipped: List[str] = field(default_factory=list)
    error: Optional[str] = None
    failed_stage: Optional[str] = None

    @property
    def scheme(self) -> str:
        return "https" if self.ssl_enabled else "http"

    @property
    def site_url(self) -> str:
        return f"{self.scheme}://{self.domain}"

    @property
    def admin_url(self) -> str:
        return f"{self.site_url}/wp-admin"

    @classmethod
    def failed(cls, error: str, stage: Optional[str] = None, ssl_requested: bool = False) -> "InstallationResult":
        return cls(success=False, error=error, failed_stage=stage, ssl_requested=ssl_requested)

    def to_record(self) -> Dict[str, Any]:
        """The completion record handed back to the caller once."""
        return {
            "siteUrl": self.site_url,
            "adminUrl": self.admin_url,
            "adminUser": self.admin_user,
            "adminPassword": self.admin_password,
            "dbName": self.db_name,
            "dbUser": self.db_user,
            "dbPassword": self.db_password,
            "installDir": self.install_dir,
            "sslRequested": self.ssl_requested,
            "sslEnabled": self.ssl_enabled,
            "skipped": list(self.skipped),
        }


@dataclass(frozen=True)
class ServerInfo:
    os: str
    memory: str
    disk_free: str


@dataclass(frozen=True)
class ProbeResult:
    success: bool
    server: Optional[ServerInfo] = None
    error: Optional[str] = None
