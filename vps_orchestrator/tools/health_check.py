# vps_orchestrator/tools/health_check.py
# -*- coding: utf-8 -*-
"""
Host health report.

Collects system resources, containers, native services, stored credentials,
certificate expiry and backup counts into a HealthReport, which can be
rendered as plain text or as a standalone HTML page.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from jinja2 import Environment, PackageLoader, select_autoescape

from vps_orchestrator.common.command_utils import command_exists
from vps_orchestrator.common.system_utils import (
    format_bytes,
    get_disk_usage,
    get_load_average,
    get_memory_info,
    get_service_state,
    inspect_container,
    is_service_active,
    list_containers,
    read_certificate_end_date,
)
from vps_orchestrator.credentials.backup import CredentialBackupManager
from vps_orchestrator.credentials.store import FileCredentialStore
from vps_orchestrator.settings.config_models import AppSettings

module_logger = logging.getLogger(__name__)

LETSENCRYPT_LIVE_DIR = Path("/etc/letsencrypt/live")
CERT_DATE_FORMAT = "%b %d %H:%M:%S %Y %Z"
CERT_WARNING_DAYS = 30
CERT_CRITICAL_DAYS = 7
DB_BACKUP_PATTERNS = ("*.sql*", "*.dump*", "*.archive*")


@dataclass
class ContainerStatus:
    name: str
    status: str
    health: str


@dataclass
class CertificateStatus:
    domain: str
    end_date: Optional[str]
    days_left: Optional[int]

    @property
    def status(self) -> str:
        if self.days_left is None:
            return "UNKNOWN"
        if self.days_left < CERT_CRITICAL_DAYS:
            return "CRITICAL"
        if self.days_left < CERT_WARNING_DAYS:
            return "WARNING"
        return "OK"


@dataclass
class BackupSummary:
    credential_backups: int = 0
    latest_credential_backup: Optional[datetime] = None
    database_backups: int = 0
    latest_database_backup: Optional[datetime] = None


@dataclass
class HealthReport:
    generated_at: datetime
    disk: Dict[str, int] = field(default_factory=dict)
    memory: Dict[str, int] = field(default_factory=dict)
    load_average: Optional[Tuple[float, float, float]] = None
    runtime_state: str = "unknown"
    containers: List[ContainerStatus] = field(default_factory=list)
    services: Dict[str, str] = field(default_factory=dict)
    credential_apps: List[str] = field(default_factory=list)
    certbot_timer: Optional[str] = None
    certificates: List[CertificateStatus] = field(default_factory=list)
    backups: BackupSummary = field(default_factory=BackupSummary)

    @property
    def disk_percent(self) -> Optional[float]:
        total = self.disk.get("total")
        if not total:
            return None
        return self.disk["used"] / total * 100

    @property
    def memory_percent(self) -> Optional[float]:
        total = self.memory.get("MemTotal")
        available = self.memory.get("MemAvailable")
        if not total or available is None:
            return None
        return (total - available) / total * 100

    def warnings(self) -> List[str]:
        found = []
        for container in self.containers:
            if container.status != "running":
                found.append(f"Container {container.name} is {container.status}")
            elif container.health == "unhealthy":
                found.append(f"Container {container.name} is unhealthy")
        for name, state in self.services.items():
            if state == "failed":
                found.append(f"Service {name} is {state}")
        for cert in self.certificates:
            if cert.status != "OK":
                found.append(f"Certificate {cert.domain}: {cert.status}")
        if self.certificates and self.certbot_timer not in (None, "active"):
            found.append("Certbot timer not active - SSL certificates will not auto-renew")
        return found


def _days_until(end_date: str, now: datetime) -> Optional[int]:
    try:
        expires = datetime.strptime(end_date, CERT_DATE_FORMAT)
    except ValueError:
        return None
    return (expires - now).days


def collect_certificates(
    app_settings: AppSettings,
    live_dir: Path = LETSENCRYPT_LIVE_DIR,
    now: Optional[datetime] = None,
    current_logger: Optional[logging.Logger] = None,
) -> List[CertificateStatus]:
    """Expiry of every ``<live_dir>/<domain>/cert.pem``."""
    now = now or datetime.now(timezone.utc).replace(tzinfo=None)
    try:
        domains = sorted(p for p in live_dir.iterdir() if p.is_dir())
    except OSError:
        return []
    certificates = []
    for domain_dir in domains:
        cert = domain_dir / "cert.pem"
        end_date = read_certificate_end_date(cert, app_settings, current_logger)
        days_left = _days_until(end_date, now) if end_date else None
        certificates.append(CertificateStatus(domain_dir.name, end_date, days_left))
    return certificates


def _latest(paths: List[Path]) -> Optional[datetime]:
    if not paths:
        return None
    return datetime.fromtimestamp(max(p.stat().st_mtime for p in paths))


def summarize_backups(
    store: FileCredentialStore, backup_root: Path
) -> BackupSummary:
    credential_backups = CredentialBackupManager(store).list_backups()
    db_backups: List[Path] = []
    if backup_root.is_dir():
        for pattern in DB_BACKUP_PATTERNS:
            db_backups.extend(
                p for p in backup_root.rglob(pattern)
                if p.is_file() and not p.name.endswith(".partial")
            )
    db_backups = sorted(set(db_backups))
    return BackupSummary(
        credential_backups=len(credential_backups),
        latest_credential_backup=_latest(credential_backups),
        database_backups=len(db_backups),
        latest_database_backup=_latest(db_backups),
    )


def collect_health(
    app_settings: AppSettings,
    store: FileCredentialStore,
    live_dir: Path = LETSENCRYPT_LIVE_DIR,
    current_logger: Optional[logging.Logger] = None,
) -> HealthReport:
    logger_to_use = current_logger if current_logger else module_logger
    report = HealthReport(generated_at=datetime.now())

    try:
        report.disk = get_disk_usage("/")
    except OSError as e:
        logger_to_use.warning(f"Could not read disk usage: {e}")
    report.memory = get_memory_info()
    report.load_average = get_load_average()

    runtime = app_settings.container_runtime_command
    if not command_exists(runtime):
        report.runtime_state = "not installed"
    elif runtime == "docker" and not is_service_active("docker", app_settings, logger_to_use):
        report.runtime_state = "not running"
    else:
        report.runtime_state = "running"
        for name in list_containers(app_settings, include_stopped=True, current_logger=logger_to_use):
            status, health = inspect_container(name, app_settings, logger_to_use)
            report.containers.append(ContainerStatus(name, status, health))

    for service in app_settings.monitored_services:
        if command_exists("systemctl"):
            report.services[service] = get_service_state(service, app_settings, logger_to_use)
        else:
            report.services[service] = "unknown"

    report.credential_apps = [entry.app_name for entry in store.list_apps()]

    if command_exists("certbot"):
        report.certbot_timer = get_service_state("certbot.timer", app_settings, logger_to_use)
    report.certificates = collect_certificates(app_settings, live_dir, current_logger=logger_to_use)
    report.backups = summarize_backups(store, Path(app_settings.backup_root))

    logger_to_use.debug(
        f"Health collected: {len(report.containers)} containers, "
        f"{len(report.certificates)} certificates"
    )
    return report


def _percent(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value:.0f}%"


def _date(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d") if value else "never"


def render_text(report: HealthReport) -> str:
    rule = "=" * 46
    lines = [
        rule,
        f"  VPS Health Check - {report.generated_at:%Y-%m-%d %H:%M:%S}",
        rule,
        "",
        "[SYSTEM RESOURCES]",
    ]
    if report.disk:
        lines.append(
            f"  Disk: {format_bytes(report.disk['used'])} used of "
            f"{format_bytes(report.disk['total'])} ({_percent(report.disk_percent)})"
        )
    if report.memory.get("MemTotal"):
        lines.append(
            f"  Memory: {format_bytes(report.memory['MemTotal'])} total, "
            f"{format_bytes(report.memory.get('MemAvailable', 0))} available "
            f"({_percent(report.memory_percent)} used)"
        )
    if report.load_average:
        lines.append("  Load average: " + ", ".join(f"{v:.2f}" for v in report.load_average))

    lines += ["", "[CONTAINERS]"]
    if report.runtime_state != "running":
        lines.append(f"  Container runtime {report.runtime_state}")
    elif not report.containers:
        lines.append("  No containers found")
    for c in report.containers:
        lines.append(f"  {c.name:<30} {c.status:<12} {c.health}")

    lines += ["", "[NATIVE SERVICES]"]
    for name, state in report.services.items():
        lines.append(f"  {name:<30} {state}")

    lines += ["", "[CREDENTIALS]", f"  Stored credentials: {len(report.credential_apps)} apps"]
    for app in report.credential_apps:
        lines.append(f"    - {app}")

    lines += ["", "[SSL CERTIFICATES]"]
    if report.certbot_timer is not None:
        lines.append(f"  Certbot auto-renewal: {report.certbot_timer}")
    if not report.certificates:
        lines.append("  No SSL certificates found")
    for cert in report.certificates:
        days = "?" if cert.days_left is None else cert.days_left
        lines.append(f"  {cert.domain:<30} {cert.end_date or 'unknown':<26} {cert.status} ({days} days)")

    b = report.backups
    lines += [
        "",
        "[BACKUPS]",
        f"  Credential backups: {b.credential_backups} (latest: {_date(b.latest_credential_backup)})",
        f"  Database backups: {b.database_backups} (latest: {_date(b.latest_database_backup)})",
    ]

    warnings = report.warnings()
    if warnings:
        lines += ["", "[WARNINGS]"] + [f"  - {w}" for w in warnings]

    lines += ["", rule, "  Health check completed", rule]
    return "\n".join(lines) + "\n"


def _template_environment() -> Environment:
    return Environment(
        loader=PackageLoader("vps_orchestrator", "templates"),
        autoescape=select_autoescape(["html", "j2"]),
        keep_trailing_newline=True,
    )


def render_html(report: HealthReport) -> str:
    template = _template_environment().get_template("health_report.html.j2")
    return template.render(
        report=report,
        warnings=report.warnings(),
        format_bytes=format_bytes,
        percent=_percent,
        date=_date,
    )
