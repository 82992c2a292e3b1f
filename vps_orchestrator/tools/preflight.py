# vps_orchestrator/tools/preflight.py
# -*- coding: utf-8 -*-
"""
Pre-flight resource checks run before an install.
"""

import logging
import socket
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from vps_orchestrator.common.system_utils import (
    MEMINFO_PATH,
    get_disk_usage,
    get_memory_info,
)

if TYPE_CHECKING:
    from vps_orchestrator.modular.catalog import Requirements

module_logger = logging.getLogger(__name__)

GIB = 1024**3


@dataclass
class PreflightReport:
    unit: str
    issues: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues


def check_disk_space(required_gb: float, path: str = "/") -> Optional[str]:
    """Return an issue message if less than `required_gb` is free on `path`."""
    try:
        free = get_disk_usage(path)["free"]
    except OSError as e:
        return f"Cannot determine free disk space on {path}: {e}"
    free_gb = free / GIB
    if free_gb < required_gb:
        return f"Insufficient disk space: {free_gb:.1f}GB available, {required_gb:g}GB required"
    return None


def check_ram_available(
    required_gb: float, meminfo_path: Path = MEMINFO_PATH
) -> Optional[str]:
    """Return an issue message if MemAvailable is below `required_gb`."""
    available = get_memory_info(meminfo_path).get("MemAvailable")
    if available is None:
        return "Cannot determine available memory"
    available_gb = available / GIB
    if available_gb < required_gb:
        return f"Insufficient RAM: {available_gb:.1f}GB available, {required_gb:g}GB required"
    return None


def check_port_available(port: int, host: str = "127.0.0.1") -> Optional[str]:
    """Return an issue message if something already listens on `port`."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.settimeout(0.5)
        if sock.connect_ex((host, port)) == 0:
            return f"Port {port} is already in use"
    return None


def run_preflight(
    requirements: "Requirements",
    unit_name: str = "",
    disk_path: str = "/",
    current_logger: Optional[logging.Logger] = None,
) -> PreflightReport:
    """
    Check disk, memory and ports against a unit's requirements.

    Zero or empty requirements are not checked.
    """
    logger_to_use = current_logger if current_logger else module_logger
    report = PreflightReport(unit=unit_name)

    checks = []
    if requirements.disk_gb:
        checks.append(check_disk_space(requirements.disk_gb, disk_path))
    if requirements.ram_gb:
        checks.append(check_ram_available(requirements.ram_gb))
    for port in requirements.ports:
        checks.append(check_port_available(port))

    report.issues = [issue for issue in checks if issue]
    for issue in report.issues:
        logger_to_use.warning(issue)
    if report.ok:
        logger_to_use.debug(f"Pre-flight checks passed for {unit_name or 'unit'}")
    return report
