# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/wpstack/config/settings.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Tuple


@dataclass(frozen=True)
class Timeouts:
    """
    Per-command ceilings in seconds. Every remote command gets one of these.
    """
    connect: float = 20.0
    keepalive: int = 10
    default: float = 120.0
    index_refresh: float = 180.0
    package_install: float = 180.0
    download: float = 120.0
    wp_cli: float = 60.0
    certbot: float = 120.0
    quick: float = 30.0


@dataclass(frozen=True)
class PhpHardening:
    upload_max_filesize: str = "64M"
    post_max_size: str = "64M"
    max_execution_time: str = "300"
    memory_limit: str = "256M"

    def directives(self) -> Dict[str, str]:
        return {
            "upload_max_filesize": self.upload_max_filesize,
            "post_max_size": self.post_max_size,
            "max_execution_time": self.max_execution_time,
            "memory_limit": self.memory_limit,
        }


@dataclass(frozen=True)
class Settings:
    """
    Immutable runtime configuration, built once at program start and passed
    explicitly to validation, the probe and the installer.
    """
    supported_php_versions: Tuple[str, ...] = ("8.1", "8.2", "8.3", "8.4")
    default_php_version: str = "8.3"

    # php<version>-<ext>; the required set must install as one unit
    required_php_extensions: Tuple[str, ...] = (
        "fpm", "mysql", "curl", "gd", "mbstring", "xml", "zip",
    )
    # each installed on its own, failures are recorded and skipped
    optional_php_extensions: Tuple[str, ...] = (
        "intl", "soap", "bcmath", "imagick",
    )
    php_ppa: str = "ppa:ondrej/php"

    web_root: str = "/var/www"
    web_user: str = "www-data"
    scratch_dir: str = "/tmp/wpstack"
    wordpress_archive_url: str = "https://wordpress.org/latest.tar.gz"
    wp_cli_url: str = "https://raw.githubusercontent.com/wp-cli/builds/gh-pages/phar/wp-cli.phar"
    wp_cli_path: str = "/usr/local/bin/wp"

    nginx_sites_available: str = "/etc/nginx/sites-available"
    nginx_sites_enabled: str = "/etc/nginx/sites-enabled"
    fastcgi_snippet: str = "snippets/fastcgi-php.conf"

    db_prefix: str = "wp_"
    db_identifier_limit: int = 16
    db_password_length: int = 32
    admin_password_length: int = 24
    salt_length: int = 64

    timeouts: Timeouts = field(default_factory=Timeouts)
    php_hardening: PhpHardening = field(default_factory=PhpHardening)

    # outer ceiling for one installation, enforced by the caller
    run_timeout: float = 300.0

    @classmethod
    def default(cls) -> "Settings":
        return cls()

    def php_package(self, version: str, ext: str) -> str:
        return f"php{version}-{ext}"

    def fpm_socket(self, version: str) -> str:
        return f"/run/php/php{version}-fpm.sock"

    def php_ini(self, version: str) -> str:
        return f"/etc/php/{version}/fpm/php.ini"
