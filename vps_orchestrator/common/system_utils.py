# vps_orchestrator/common/system_utils.py
# -*- coding: utf-8 -*-
"""
Helpers for querying systemd services, containers and host resources.

Every helper here is read-mostly and reports problems as "absent" rather
than raising.
"""

import getpass
import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from vps_orchestrator.settings.config_models import AppSettings

from .command_utils import command_exists, run_command, run_elevated_command

module_logger = logging.getLogger(__name__)

MEMINFO_PATH = Path("/proc/meminfo")


def is_service_active(
    service_name: str,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """Return True if ``systemctl is-active`` reports the unit as active."""
    try:
        result = run_command(
            ["systemctl", "is-active", "--quiet", service_name],
            app_settings,
            check=False,
            current_logger=current_logger,
            quiet=True,
        )
    except FileNotFoundError:
        return False
    return result.returncode == 0


def get_service_state(
    service_name: str,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> str:
    """Return the ``systemctl is-active`` state string, or "unknown"."""
    try:
        result = run_command(
            ["systemctl", "is-active", service_name],
            app_settings,
            check=False,
            capture_output=True,
            current_logger=current_logger,
            quiet=True,
        )
    except FileNotFoundError:
        return "unknown"
    return result.stdout.strip() or "unknown"


def start_service(
    service_name: str,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """Try to start a systemd unit. Returns True if systemctl succeeded."""
    try:
        result = run_elevated_command(
            ["systemctl", "start", service_name],
            app_settings,
            check=False,
            capture_output=True,
            current_logger=current_logger,
            quiet=True,
        )
    except FileNotFoundError:
        return False
    return result.returncode == 0


def container_runtime_available(
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Return True if the container runtime CLI is on PATH and, for Docker,
    the docker daemon service is active.
    """
    runtime = app_settings.container_runtime_command
    if not command_exists(runtime):
        return False
    if runtime == "docker":
        return is_service_active("docker", app_settings, current_logger)
    return True


def list_containers(
    app_settings: AppSettings,
    include_stopped: bool = False,
    current_logger: Optional[logging.Logger] = None,
) -> List[str]:
    """
    Return container names known to the runtime.

    Args:
        app_settings: Settings providing the runtime command.
        include_stopped: List stopped containers too (``ps -a``).
        current_logger: Optional logger.
    """
    command = [app_settings.container_runtime_command, "ps"]
    if include_stopped:
        command.append("-a")
    command += ["--format", "{{.Names}}"]
    try:
        result = run_elevated_command(
            command,
            app_settings,
            check=False,
            capture_output=True,
            current_logger=current_logger,
            quiet=True,
        )
    except FileNotFoundError:
        return []
    if result.returncode != 0:
        return []
    return [line.strip() for line in result.stdout.splitlines() if line.strip()]


def start_container(
    container_name: str,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    try:
        result = run_elevated_command(
            [app_settings.container_runtime_command, "start", container_name],
            app_settings,
            check=False,
            capture_output=True,
            current_logger=current_logger,
            quiet=True,
        )
    except FileNotFoundError:
        return False
    return result.returncode == 0


def inspect_container(
    container_name: str,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> Tuple[str, str]:
    """
    Return ``(status, health)`` for a container.

    Health is "none" for containers without a healthcheck; both fields are
    "unknown" when the runtime cannot be queried.
    """
    fmt = "{{.State.Status}}|{{if .State.Health}}{{.State.Health.Status}}{{else}}none{{end}}"
    try:
        result = run_elevated_command(
            [
                app_settings.container_runtime_command,
                "inspect",
                f"--format={fmt}",
                container_name,
            ],
            app_settings,
            check=False,
            capture_output=True,
            current_logger=current_logger,
            quiet=True,
        )
    except FileNotFoundError:
        return "unknown", "unknown"
    if result.returncode != 0 or "|" not in result.stdout:
        return "unknown", "unknown"
    status, health = result.stdout.strip().split("|", 1)
    return status or "unknown", health or "none"


def get_disk_usage(path: str = "/") -> Dict[str, int]:
    """Return total/used/free bytes for the filesystem holding `path`."""
    usage = shutil.disk_usage(path)
    return {"total": usage.total, "used": usage.used, "free": usage.free}


def get_memory_info(meminfo_path: Path = MEMINFO_PATH) -> Dict[str, int]:
    """
    Parse ``/proc/meminfo`` into bytes.

    Returns an empty dict when the file is unavailable (non-Linux hosts).
    """
    info: Dict[str, int] = {}
    try:
        with open(meminfo_path, "r", encoding="utf-8") as f:
            for line in f:
                key, _, rest = line.partition(":")
                parts = rest.split()
                if not parts:
                    continue
                try:
                    value = int(parts[0])
                except ValueError:
                    continue
                if len(parts) > 1 and parts[1].lower() == "kb":
                    value *= 1024
                info[key.strip()] = value
    except OSError as e:
        module_logger.debug(f"Could not read {meminfo_path}: {e}")
    return info


def get_load_average() -> Optional[Tuple[float, float, float]]:
    try:
        return os.getloadavg()
    except OSError:
        return None


def format_bytes(num_bytes: float) -> str:
    """Human readable size, e.g. ``1.5G``."""
    for unit in ("B", "K", "M", "G", "T"):
        if abs(num_bytes) < 1024 or unit == "T":
            if unit == "B":
                return f"{int(num_bytes)}{unit}"
            return f"{num_bytes:.1f}{unit}"
        num_bytes /= 1024
    return f"{num_bytes:.1f}T"


def get_invoking_user() -> str:
    """The human behind the process: ``SUDO_USER`` when run through sudo."""
    sudo_user = os.environ.get("SUDO_USER")
    if sudo_user:
        return sudo_user
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


def read_certificate_end_date(
    cert_path: Path,
    app_settings: Optional[AppSettings] = None,
    current_logger: Optional[logging.Logger] = None,
) -> Optional[str]:
    """Return the ``notAfter`` date string of a PEM certificate, or None."""
    try:
        result = run_elevated_command(
            ["openssl", "x509", "-enddate", "-noout", "-in", str(cert_path)],
            app_settings,
            check=True,
            capture_output=True,
            current_logger=current_logger,
            quiet=True,
        )
    except (FileNotFoundError, subprocess.CalledProcessError):
        return None
    _, _, end_date = result.stdout.strip().partition("=")
    return end_date or None
