"""
Modular installer framework.

This package provides the unit catalog, the installer interface and the
orchestrator that installs units in dependency order.
"""

from vps_orchestrator.modular.base_installer import BaseInstaller
from vps_orchestrator.modular.orchestrator import InstallerOrchestrator, InstallResult
from vps_orchestrator.modular.registry import InstallerRegistry

__all__ = ["BaseInstaller", "InstallerRegistry", "InstallerOrchestrator", "InstallResult"]
