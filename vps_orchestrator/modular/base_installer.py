"""
Base installer class for all installable units.

This module provides the base class that every unit the orchestrator can
install must inherit from. It defines the common interface the orchestrator
relies on: an install action and an installed-probe, plus the declared
dependency metadata.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from vps_orchestrator.modular.catalog import Requirements
from vps_orchestrator.settings.config_models import AppSettings


class BaseInstaller(ABC):
    """
    Base class for all installable units.

    Subclasses implement :meth:`install` and :meth:`is_installed`. The
    dependency lists are ordered: required dependencies are satisfied in the
    order they are declared.
    """

    def __init__(
        self,
        name: str,
        app_settings: AppSettings,
        dependencies: Optional[Sequence[str]] = None,
        optional_dependencies: Optional[Sequence[str]] = None,
        description: str = "",
        category: str = "misc",
        requirements: Optional[Requirements] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the installer.

        Args:
            name: The unit name, as used in the catalog.
            app_settings: The application settings.
            dependencies: Units that must be present before this one installs.
            optional_dependencies: Units offered after a successful install.
            description: One-line description shown to the operator.
            category: Catalog category used for grouping in listings.
            requirements: Pre-flight resource requirements.
            logger: Optional logger instance. If not provided, a new logger will be created.
        """
        self.name = name
        self.app_settings = app_settings
        self.dependencies: List[str] = list(dependencies or [])
        self.optional_dependencies: List[str] = list(
            optional_dependencies or []
        )
        self.description = description
        self.category = category
        self.requirements = requirements or Requirements()
        self.logger = logger or logging.getLogger(
            f"{__name__}.{self.__class__.__name__}"
        )

    @abstractmethod
    def install(self) -> bool:
        """
        Install the unit.

        Returns:
            True if the installation was successful, False otherwise.
        """

    @abstractmethod
    def is_installed(self) -> bool:
        """
        Check if the unit is installed.

        Must not fail: anything that prevents a positive answer is False.

        Returns:
            True if the unit is installed, False otherwise.
        """

    def get_dependencies(self) -> List[str]:
        return list(self.dependencies)

    def get_optional_dependencies(self) -> List[str]:
        return list(self.optional_dependencies)

    def get_description(self) -> str:
        return self.description

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
