"""
Registry for installable units.

This module provides the registry the orchestrator looks units up in, and
the dependency resolution used to validate and preview install order.
"""

import logging
from typing import Dict, List, Optional

from vps_orchestrator.modular.base_installer import BaseInstaller
from vps_orchestrator.modular.catalog import Catalog
from vps_orchestrator.modular.exceptions import (
    CircularDependencyError,
    InstallerNotFoundError,
)
from vps_orchestrator.modular.script_installer import ScriptInstaller
from vps_orchestrator.settings.config_models import AppSettings


class InstallerRegistry:
    """
    Registry for installable units.

    Holds one installer instance per unit name. Lookups are by exact name.
    """

    def __init__(self) -> None:
        self._registry: Dict[str, BaseInstaller] = {}

    @classmethod
    def from_catalog(
        cls,
        catalog: Catalog,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ) -> "InstallerRegistry":
        """
        Build a registry with one ScriptInstaller per catalog entry.

        Args:
            catalog: The loaded unit catalog.
            app_settings: The application settings.
            logger: Optional logger passed to every installer.
        """
        registry = cls()
        for spec in catalog:
            registry.register(
                ScriptInstaller.from_spec(spec, app_settings, logger)
            )
        return registry

    def register(self, installer: BaseInstaller) -> BaseInstaller:
        """
        Register an installer under its unit name.

        Raises:
            ValueError: If an installer with the same name is already registered.
        """
        if installer.name in self._registry:
            raise ValueError(
                f"Installer with name '{installer.name}' already registered"
            )
        self._registry[installer.name] = installer
        return installer

    def get_installer(self, name: str) -> BaseInstaller:
        """
        Get an installer by name.

        Raises:
            InstallerNotFoundError: If no installer with the given name is registered.
        """
        if name not in self._registry:
            raise InstallerNotFoundError(name)
        return self._registry[name]

    def get_all_installers(self) -> Dict[str, BaseInstaller]:
        return self._registry.copy()

    def get_installer_dependencies(self, name: str) -> List[str]:
        """
        Get the required dependencies of an installer, in declared order.

        Raises:
            InstallerNotFoundError: If no installer with the given name is registered.
        """
        return self.get_installer(name).get_dependencies()

    def resolve_dependencies(self, installers: List[str]) -> List[str]:
        """
        Resolve required dependencies for a list of installers.

        Dependencies are visited depth-first in declared order, so every unit
        appears after everything it requires and each unit appears once.

        Args:
            installers: A list of installer names.

        Returns:
            A list of installer names in the order they should be installed.

        Raises:
            InstallerNotFoundError: If any of the installers or their dependencies are not registered.
            CircularDependencyError: If there is a circular dependency.
        """
        result: List[str] = []
        visited = set()
        path: List[str] = []

        def visit(installer: str) -> None:
            if installer in path:
                cycle = path[path.index(installer):] + [installer]
                raise CircularDependencyError(cycle)

            if installer in visited:
                return

            path.append(installer)
            for dependency in self.get_installer_dependencies(installer):
                visit(dependency)
            path.pop()

            visited.add(installer)
            result.append(installer)

        for installer in installers:
            if installer not in visited:
                visit(installer)

        return result

    def __contains__(self, name: object) -> bool:
        return name in self._registry

    def __len__(self) -> int:
        return len(self._registry)
