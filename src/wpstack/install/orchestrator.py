# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/wpstack/install/orchestrator.py

from __future__ import annotations

import logging
import posixpath
from typing import Callable, List, Optional

from wpstack.config.models import ConnectionSpec, SiteParameters
from wpstack.config.settings import Settings
from wpstack.errors import (
    CommandFailure,
    CommandTimeout,
    ConfigValidationFailure,
    SSHConnectionError,
    StageError,
)
from wpstack.observers.events import Stage, Status
from wpstack.observers.sinks import ProgressSink
from wpstack.utils.helpers import db_identifier, generate_password, sanitize_domain, shell_quote
from wpstack.utils.ssh import RemoteSession, open_session
from wpstack.utils.ssh_runner import SSHRunner

from .models import InstallationResult, ProvisioningState
from .steps import Reporter, StepResult, ensure_package, run_step
from .template_renderer import TemplateRenderer

log = logging.getLogger("wpstack")

APT = "sudo DEBIAN_FRONTEND=noninteractive apt-get"

SALT_KEYS = (
    "AUTH_KEY", "SECURE_AUTH_KEY", "LOGGED_IN_KEY", "NONCE_KEY",
    "AUTH_SALT", "SECURE_AUTH_SALT", "LOGGED_IN_SALT", "NONCE_SALT",
)

SSL_HINT = "ensure DNS points to this server, then run: sudo certbot --nginx"

SessionFactory = Callable[[ConnectionSpec, Settings], RemoteSession]


class WordPressInstaller:
    """
    The ordered provisioning program for one host.

    Stages run strictly one after another on a single SSHRunner. Mandatory
    stages raise StageError and end the run; the optional PHP extensions and
    the TLS stage only ever leave a caveat behind.
    """

    def __init__(
        self,
        runner: SSHRunner,
        site: SiteParameters,
        reporter: Reporter,
        settings: Optional[Settings] = None,
        ssh_port: int = 22,
        renderer: Optional[TemplateRenderer] = None,
    ):
        self.runner = runner
        self.site = site
        self.reporter = reporter
        self.settings = settings or Settings.default()
        self.ssh_port = ssh_port
        self.renderer = renderer or TemplateRenderer()

        s = self.settings
        domain = sanitize_domain(site.domain)
        ident = db_identifier(domain, prefix=s.db_prefix, limit=s.db_identifier_limit)
        self.state = ProvisioningState(
            domain=domain,
            install_dir=posixpath.join(s.web_root, domain),
            php_version=site.php_version,
            fpm_socket=s.fpm_socket(site.php_version),
            db_name=ident,
            db_user=ident,
            db_password=generate_password(s.db_password_length),
            admin_password=generate_password(s.admin_password_length),
        )

    # ------------------ public API ------------------

    def run(self) -> InstallationResult:
        st = self.state
        php = st.php_version
        steps = [
            (Stage.SYSTEM_UPDATE, "Updating system packages", self.system_update),
            (Stage.NGINX, "Installing Nginx", self.install_nginx),
            (Stage.DATABASE, "Installing MariaDB", self.install_database),
            (Stage.PHP, f"Installing PHP {php} and extensions", self.install_php),
            (Stage.DB_CONFIG, "Creating WordPress database and user", self.configure_database),
            (Stage.WORDPRESS, "Downloading latest WordPress", self.download_wordpress),
            (Stage.WP_CONFIG, "Configuring WordPress", self.configure_wordpress),
            (Stage.NGINX_CONFIG, "Setting up Nginx virtual host", self.configure_nginx),
            (Stage.WP_INSTALL, "Running WordPress installation", self.install_wordpress),
            (Stage.FIREWALL, "Configuring firewall", self.configure_firewall),
            (Stage.SECURITY, "Applying PHP hardening", self.harden_php),
        ]
        for stage, label, action in steps:
            run_step(self.reporter, stage, label, action)

        if self.site.enable_ssl:
            run_step(
                self.reporter, Stage.SSL, "Setting up SSL with Let's Encrypt",
                self.issue_certificate, best_effort=True, hint=SSL_HINT,
            )
            if not st.ssl_enabled:
                st.skipped.append("ssl")

        return InstallationResult(
            success=True,
            domain=st.domain,
            admin_user=self.site.admin_user,
            # an existing install keeps its own admin credentials
            admin_password="" if st.already_installed else st.admin_password,
            db_name=st.db_name,
            db_user=st.db_user,
            db_password=st.db_password,
            install_dir=st.install_dir,
            ssl_requested=self.site.enable_ssl,
            ssl_enabled=st.ssl_enabled,
            skipped=list(st.skipped),
        )

    # ------------------ stages ------------------

    def system_update(self):
        self.runner.check(
            f"{APT} update -y",
            timeout=self.settings.timeouts.index_refresh,
            context="System update",
        )
        return "System packages updated"

    def install_nginx(self):
        installed = ensure_package(
            self.runner,
            "nginx",
            check_cmd="command -v nginx > /dev/null 2>&1",
            install_cmd=f"{APT} install -y nginx",
            enable_cmd="sudo systemctl enable nginx && sudo systemctl start nginx",
            install_timeout=self.settings.timeouts.package_install,
        )
        return "Nginx installed and running" if installed else "Nginx already installed and running"

    def install_database(self):
        installed = ensure_package(
            self.runner,
            "MariaDB",
            check_cmd="command -v mariadb > /dev/null 2>&1 || command -v mysql > /dev/null 2>&1",
            install_cmd=f"{APT} install -y mariadb-server mariadb-client",
            enable_cmd=(
                "(sudo systemctl enable mariadb && sudo systemctl start mariadb) "
                "|| (sudo systemctl enable mysql && sudo systemctl start mysql)"
            ),
            install_timeout=self.settings.timeouts.package_install,
        )
        return "MariaDB installed and running" if installed else "MariaDB already installed and running"

    def install_php(self):
        s = self.settings
        v = self.state.php_version
        fpm = s.php_package(v, "fpm")

        if not self.runner.succeeds(f"apt-cache show {fpm} > /dev/null 2>&1"):
            log.info("%s not in the package index, adding %s", fpm, s.php_ppa)
            self.runner.check(
                f"{APT} install -y software-properties-common && sudo add-apt-repository -y {s.php_ppa}",
                timeout=s.timeouts.package_install,
                context=f"Adding {s.php_ppa}",
            )
            self.runner.check(
                f"{APT} update -y",
                timeout=s.timeouts.index_refresh,
                context="Refreshing package index",
            )

        required = [s.php_package(v, ext) for ext in s.required_php_extensions]
        if self.runner.succeeds(f"dpkg -s {' '.join(required)} > /dev/null 2>&1"):
            log.info("PHP %s required packages already installed", v)
        else:
            self.runner.check(
                f"{APT} install -y {' '.join(required)}",
                timeout=s.timeouts.package_install,
                context=f"PHP {v} installation",
            )

        skipped: List[str] = []
        for ext in s.optional_php_extensions:
            pkg = s.php_package(v, ext)
            if self.runner.succeeds(f"dpkg -s {pkg} > /dev/null 2>&1"):
                continue
            try:
                res = self.runner.run(f"{APT} install -y {pkg}", timeout=s.timeouts.package_install)
            except CommandTimeout as e:
                log.warning("Optional extension %s: %s", pkg, e)
                skipped.append(pkg)
                continue
            if not res.ok:
                log.warning("Optional extension %s not installed: %s", pkg, res.diagnostic())
                skipped.append(pkg)
        self.state.skipped.extend(skipped)

        self.runner.check(
            f"sudo systemctl enable php{v}-fpm && sudo systemctl start php{v}-fpm",
            context=f"Starting php{v}-fpm",
        )
        detail = f"Optional extensions not installed: {', '.join(skipped)}" if skipped else None
        return StepResult(message=f"PHP {v} installed with extensions", detail=detail)

    def configure_database(self):
        st = self.state
        client = "mariadb" if self.runner.succeeds("command -v mariadb > /dev/null 2>&1") else "mysql"
        statements = [
            ("Creating database",
             f"CREATE DATABASE IF NOT EXISTS `{st.db_name}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;"),
            ("Creating database user",
             f"CREATE USER IF NOT EXISTS '{st.db_user}'@'localhost' IDENTIFIED BY '{st.db_password}';"),
            # a user left by an earlier run must take this run's password
            ("Setting database user password",
             f"ALTER USER '{st.db_user}'@'localhost' IDENTIFIED BY '{st.db_password}';"),
            ("Granting privileges",
             f"GRANT ALL PRIVILEGES ON `{st.db_name}`.* TO '{st.db_user}'@'localhost';"),
            ("Flushing privileges", "FLUSH PRIVILEGES;"),
        ]
        for context, sql in statements:
            self.runner.check(
                f"sudo {client} -e {shell_quote(sql)}",
                context=f"Database setup: {context.lower()}",
                secret=True,
            )
        return "Database and user created"

    def download_wordpress(self):
        s = self.settings
        scratch = s.scratch_dir
        archive = posixpath.join(scratch, "wordpress.tar.gz")
        target = self.state.install_dir
        commands = [
            (f"sudo rm -rf {scratch} && mkdir -p {scratch}", "Clearing scratch directory", None),
            (f"sudo mkdir -p {target}", f"Creating {target}", None),
            (f"curl -fsSL -o {archive} {s.wordpress_archive_url}", "Downloading WordPress", s.timeouts.download),
            (f"tar -xzf {archive} -C {scratch}", "Unpacking WordPress", None),
            (f"sudo cp -a {scratch}/wordpress/. {target}/", f"Copying WordPress into {target}", None),
            (f"sudo rm -rf {scratch}", "Removing scratch files", None),
        ]
        for cmd, context, timeout in commands:
            self.runner.check(cmd, timeout=timeout, context=f"WordPress download: {context.lower()}")
        return "WordPress downloaded"

    def configure_wordpress(self):
        st = self.state
        s = self.settings
        salts = {key: generate_password(s.salt_length) for key in SALT_KEYS}
        content = self.renderer.render(
            "wp-config.php.j2",
            {
                "db_name": st.db_name,
                "db_user": st.db_user,
                "db_password": st.db_password,
                "salts": salts,
                "table_prefix": s.db_prefix,
            },
        )
        self.runner.write_file(
            posixpath.join(st.install_dir, "wp-config.php"),
            content,
            marker="WPEOF",
            context="Writing wp-config.php",
            secret=True,
        )

        d = st.install_dir
        owner = f"{s.web_user}:{s.web_user}"
        self.runner.check(f"sudo chown -R {owner} {d}", context="Setting ownership")
        self.runner.check(f"sudo find {d} -type d -exec chmod 755 {{}} +", context="Setting directory permissions")
        self.runner.check(f"sudo find {d} -type f -exec chmod 644 {{}} +", context="Setting file permissions")
        return "WordPress configured"

    def configure_nginx(self):
        st = self.state
        s = self.settings
        available = posixpath.join(s.nginx_sites_available, st.domain)
        enabled = posixpath.join(s.nginx_sites_enabled, st.domain)

        self._write_vhost(available, inline_fastcgi=False)
        self.runner.check(f"sudo ln -sf {available} {enabled}", context="Enabling site")
        self.runner.check(f"sudo rm -f {posixpath.join(s.nginx_sites_enabled, 'default')}", context="Removing default site")

        test = self.runner.run("sudo nginx -t", context="nginx -t")
        if not self._nginx_ok(test):
            log.warning("nginx -t failed (%s); retrying with inline fastcgi settings", test.diagnostic())
            self._write_vhost(available, inline_fastcgi=True)
            st.inline_fastcgi = True
            test = self.runner.run("sudo nginx -t", context="nginx -t")
            if not self._nginx_ok(test):
                raise ConfigValidationFailure("Nginx configuration test", test.exit_code, test.diagnostic())

        self.runner.check("sudo systemctl reload nginx", context="Reloading nginx")
        detail = f"{s.fastcgi_snippet} unavailable; using inline fastcgi settings" if st.inline_fastcgi else None
        return StepResult(message="Nginx virtual host configured", detail=detail)

    def install_wordpress(self):
        st = self.state
        s = self.settings
        wp = s.wp_cli_path
        t = s.timeouts

        if not self.runner.succeeds(f"test -x {wp} && {wp} --info --allow-root > /dev/null 2>&1"):
            phar = posixpath.join("/tmp", "wp-cli.phar")
            self.runner.check(f"curl -fsSL -o {phar} {s.wp_cli_url}", timeout=t.download, context="Downloading WP-CLI")
            self.runner.check(f"php {phar} --info > /dev/null", timeout=t.wp_cli, context="Checking WP-CLI")
            self.runner.check(f"sudo install -m 0755 {phar} {wp} && rm -f {phar}", context="Installing WP-CLI")

        as_web = f"sudo -u {s.web_user} {wp}"
        path = shell_quote(st.install_dir)
        if self.runner.succeeds(f"{as_web} core is-installed --path={path}", timeout=t.wp_cli):
            st.already_installed = True
            return StepResult(
                message="WordPress already initialized",
                detail="Existing site and admin account left unchanged",
            )

        cmd = (
            f"{as_web} core install --path={path}"
            f" --url={shell_quote('http://' + st.domain)}"
            f" --title={shell_quote(self.site.site_title)}"
            f" --admin_user={shell_quote(self.site.admin_user)}"
            f" --admin_password={shell_quote(st.admin_password)}"
            f" --admin_email={shell_quote(self.site.admin_email)}"
            " --skip-email"
        )
        res = self.runner.run(cmd, timeout=t.wp_cli, context="WordPress core install", secret=True)
        if not res.ok and "Success" not in res.stdout:
            raise CommandFailure("WordPress core install", res.exit_code, res.diagnostic())
        return "WordPress installed successfully"

    def configure_firewall(self):
        ensure_package(
            self.runner,
            "ufw",
            check_cmd="command -v ufw > /dev/null 2>&1",
            install_cmd=f"{APT} install -y ufw",
            install_timeout=self.settings.timeouts.package_install,
        )
        # the session's own port first, or enabling would lock us out
        for rule in (f"{self.ssh_port}/tcp", "80/tcp", "443/tcp"):
            self.runner.check(f"sudo ufw allow {rule}", context=f"Allowing {rule}")
        self.runner.check("sudo ufw --force enable", context="Enabling firewall")
        return f"Firewall enabled (SSH {self.ssh_port}, HTTP, HTTPS)"

    def harden_php(self):
        v = self.state.php_version
        ini = self.settings.php_ini(v)
        missed = []
        for directive, value in self.settings.php_hardening.directives().items():
            res = self.runner.run(
                f"sudo sed -i -E 's/^[;[:space:]]*{directive}[[:space:]]*=.*/{directive} = {value}/' {ini}"
            )
            if not res.ok:
                log.warning("Could not set %s in %s: %s", directive, ini, res.diagnostic())
                missed.append(directive)
        self.runner.check(f"sudo systemctl restart php{v}-fpm", context=f"Restarting php{v}-fpm")
        detail = f"Not applied: {', '.join(missed)}" if missed else None
        return StepResult(message="Security hardening applied", detail=detail)

    def issue_certificate(self):
        st = self.state
        s = self.settings
        ensure_package(
            self.runner,
            "certbot",
            check_cmd="command -v certbot > /dev/null 2>&1",
            install_cmd=f"{APT} install -y certbot python3-certbot-nginx",
            install_timeout=s.timeouts.package_install,
        )

        bare = self._resolve(st.domain)
        if not bare:
            raise CommandFailure(f"Resolving {st.domain}", None, f"{st.domain} does not resolve")
        www_name = f"www.{st.domain}"
        www = self._resolve(www_name)
        names = [st.domain]
        if www == bare:
            names.append(www_name)
        else:
            log.info("%s resolves to %s, %s to %s; certificate for %s only",
                     www_name, www or "nothing", st.domain, bare, st.domain)

        domains = " ".join(f"-d {n}" for n in names)
        self.runner.check(
            f"sudo certbot --nginx {domains} --non-interactive --agree-tos"
            f" --email {shell_quote(self.site.admin_email)} --redirect",
            timeout=s.timeouts.certbot,
            context="Certificate issuance",
        )
        self.runner.check("sudo systemctl reload nginx", context="Reloading nginx")

        as_web = f"sudo -u {s.web_user} {s.wp_cli_path}"
        url = shell_quote(f"https://{st.domain}")
        path = shell_quote(st.install_dir)
        try:
            for option in ("home", "siteurl"):
                self.runner.check(
                    f"{as_web} option update {option} {url} --path={path}",
                    timeout=s.timeouts.wp_cli,
                    context=f"Updating WordPress {option}",
                )
        except CommandFailure as e:
            # certificate is live but WordPress still stores http:// URLs
            log.warning("Certificate installed but site URL not switched: %s", e)
            return StepResult(
                message="SSL certificate installed, site URL not switched",
                detail=(
                    f"{e}; run: wp option update home {url} and"
                    f" wp option update siteurl {url} --path={path}"
                ),
                ok=False,
            )
        st.ssl_enabled = True

        detail = None if len(names) == 2 else f"{www_name} does not point to this server; certificate covers {st.domain} only"
        return StepResult(message="SSL certificate installed", detail=detail)

    # ------------------ helpers ------------------

    def _write_vhost(self, path: str, inline_fastcgi: bool) -> None:
        st = self.state
        content = self.renderer.render(
            "nginx_site.conf.j2",
            {
                "server_names": [st.domain, f"www.{st.domain}"],
                "root": st.install_dir,
                "fpm_socket": st.fpm_socket,
                "fastcgi_snippet": self.settings.fastcgi_snippet,
                "inline_fastcgi": inline_fastcgi,
                "client_max_body_size": self.settings.php_hardening.upload_max_filesize,
            },
        )
        self.runner.write_file(path, content, marker="NGINXEOF", context=f"Writing {path}")

    @staticmethod
    def _nginx_ok(res) -> bool:
        return res.ok or res.contains("test is successful")

    def _resolve(self, name: str) -> Optional[str]:
        res = self.runner.run(
            f"getent ahostsv4 {name} | awk 'NR==1 {{print $1}}'",
            timeout=self.settings.timeouts.quick,
        )
        return (res.stdout or None) if res.ok else None


def install(
    connection: ConnectionSpec,
    site: SiteParameters,
    sink: ProgressSink,
    settings: Optional[Settings] = None,
    session_factory: SessionFactory = open_session,
    run_id: Optional[str] = None,
) -> InstallationResult:
    """
    One installation request, start to finish.

    Owns the session: opened here, closed exactly once on every path. Emits
    the ``connecting`` pseudo-stage and exactly one run-level terminal event
    (``complete`` carrying the completion record, or ``error``).
    """
    settings = settings or Settings.default()
    reporter = Reporter(sink, run_id=run_id)
    session: Optional[RemoteSession] = None
    try:
        reporter.emit(Stage.CONNECTING, Status.RUNNING, "Connecting to server...")
        try:
            session = session_factory(connection, settings)
        except SSHConnectionError as e:
            reporter.emit(Stage.CONNECTING, Status.FAILED, "Connection failed", str(e))
            raise StageError(Stage.CONNECTING.value, "Connecting to server", e) from e
        reporter.emit(Stage.CONNECTING, Status.COMPLETED, "Connected to server")

        runner = SSHRunner(session, default_timeout=settings.timeouts.default)
        installer = WordPressInstaller(
            runner, site, reporter, settings=settings, ssh_port=connection.port,
        )
        result = installer.run()
    except StageError as e:
        log.error("Installation failed at %s: %s", e.stage, e)
        result = InstallationResult.failed(str(e), stage=e.stage, ssl_requested=site.enable_ssl)
        reporter.emit(Stage.ERROR, Status.FAILED, str(e), detail=e.stage)
    except Exception as e:
        log.exception("Installation aborted by an unexpected error")
        result = InstallationResult.failed(str(e) or type(e).__name__, ssl_requested=site.enable_ssl)
        reporter.emit(Stage.ERROR, Status.FAILED, result.error)
    else:
        log.info("Installation of %s complete", result.site_url)
        reporter.emit(
            Stage.COMPLETE, Status.COMPLETED, "WordPress installation complete!",
            result=result.to_record(),
        )
    finally:
        if session is not None:
            session.close()
    return result
