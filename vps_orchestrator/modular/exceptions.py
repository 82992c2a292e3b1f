"""
Exceptions raised by the installer framework.
"""

from typing import List


class OrchestratorError(Exception):
    """Base class for installer framework errors."""


class CatalogError(OrchestratorError):
    """The unit catalog could not be read or is invalid."""


class InstallerNotFoundError(OrchestratorError, KeyError):
    """No unit with the requested name is declared."""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Installer not found: '{self.name}'"


class CircularDependencyError(OrchestratorError, ValueError):
    """The required-dependency graph contains a cycle."""

    def __init__(self, cycle: List[str]):
        super().__init__(cycle)
        self.cycle = list(cycle)

    def __str__(self) -> str:
        return f"Circular dependency detected: {' -> '.join(self.cycle)}"


class InstallationError(OrchestratorError):
    """A unit failed to install, or the operator rejected it."""

    def __init__(self, unit: str, reason: str):
        super().__init__(unit, reason)
        self.unit = unit
        self.reason = reason

    def __str__(self) -> str:
        return f"{self.unit}: {self.reason}"
