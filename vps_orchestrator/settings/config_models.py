# vps_orchestrator/settings/config_models.py
# -*- coding: utf-8 -*-
"""
Pydantic models for application configuration.

This module defines the structured settings for the orchestrator,
including defaults, type annotations, and descriptions.
It utilizes Pydantic for data validation and settings management.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Default Static Values (can be overridden by config file/env/cli) ---
APPS_DIR_DEFAULT: Path = Path("apps")
CATALOG_PATH_DEFAULT: Path = Path("config_files") / "apps.yaml"
SECRETS_DIR_DEFAULT: Path = Path.home() / ".vps-secrets"
BACKUP_ROOT_DEFAULT: Path = Path("/opt/backups")

CONTAINER_RUNTIME_COMMAND_DEFAULT: str = "docker"
SHELL_DEFAULT: str = "bash"

MONITORED_SERVICES_DEFAULT: List[str] = [
    "docker",
    "nginx",
    "fail2ban",
    "redis-server",
    "postgresql",
    "wg-quick@wg0",
]

SYMBOLS_DEFAULT: Dict[str, str] = {
    "success": "✅",
    "error": "❌",
    "warning": "⚠️",
    "info": "ℹ️",
    "step": "➡️",
    "gear": "⚙️",
    "package": "📦",
    "rocket": "🚀",
    "sparkles": "✨",
    "critical": "🔥",
    "debug": "🐛",
    "key": "🔑",
}


class AppSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(env_prefix="VPS_", extra="ignore")

    apps_dir: Path = Field(
        default=APPS_DIR_DEFAULT,
        description="Root of the apps/<category>/<unit>/install.sh tree.",
    )
    catalog_path: Path = Field(
        default=CATALOG_PATH_DEFAULT,
        description="Unit catalog (YAML, or the flat apps.conf format).",
    )
    secrets_dir: Path = Field(
        default=SECRETS_DIR_DEFAULT,
        description="Directory holding the per-app credential files.",
    )
    audit_log_path: Optional[Path] = Field(
        default=None,
        description="Audit log file. Defaults to <secrets_dir>/.audit.log.",
    )
    backup_root: Path = Field(
        default=BACKUP_ROOT_DEFAULT,
        description="Root directory for database dumps.",
    )

    assume_yes: bool = Field(
        default=False,
        description="Answer yes to every confirmation prompt (automation mode).",
    )
    probe_autostart: bool = Field(
        default=False,
        description="Let installed-probes start a stopped service or container.",
    )
    probe_settle_seconds: float = Field(
        default=2.0,
        description="Wait after an autostart before probing again.",
    )
    container_runtime_command: str = Field(
        default=CONTAINER_RUNTIME_COMMAND_DEFAULT,
        description="Command for the container runtime CLI (e.g., docker, podman).",
    )
    shell: str = Field(
        default=SHELL_DEFAULT,
        description="Interpreter used to run unit install scripts.",
    )

    credential_backup_keep: int = Field(
        default=10,
        description="Number of credential backup archives to keep.",
    )
    backup_retention_days: int = Field(
        default=7,
        description="Database dumps older than this are removed by cleanup.",
    )
    monitored_services: List[str] = Field(
        default_factory=lambda: list(MONITORED_SERVICES_DEFAULT),
        description="Systemd services reported by the health check.",
    )

    log_level: str = Field(default="INFO", description="Console log level.")
    log_file: Optional[Path] = Field(
        default=None,
        description="Optional JSON-structured log file.",
    )

    symbols: Dict[str, str] = Field(
        default_factory=lambda: dict(SYMBOLS_DEFAULT)
    )

    @field_validator(
        "apps_dir",
        "catalog_path",
        "secrets_dir",
        "audit_log_path",
        "backup_root",
        "log_file",
        mode="before",
    )
    @classmethod
    def expand_home(cls, value: Any) -> Any:
        if isinstance(value, (str, Path)):
            return Path(value).expanduser()
        return value

    @property
    def effective_audit_log_path(self) -> Path:
        if self.audit_log_path is not None:
            return self.audit_log_path
        return self.secrets_dir / ".audit.log"
