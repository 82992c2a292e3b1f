"""
Dependency-driven installer runner.

This module provides the InstallerOrchestrator class, which installs a
requested unit by first satisfying its required dependencies, then running
the unit's own installer, then offering its optional dependencies.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from vps_orchestrator.common.command_utils import log_message
from vps_orchestrator.credentials.audit import AuditLog
from vps_orchestrator.credentials.store import CredentialStore
from vps_orchestrator.modular.base_installer import BaseInstaller
from vps_orchestrator.modular.catalog import Requirements
from vps_orchestrator.modular.exceptions import (
    InstallationError,
    OrchestratorError,
)
from vps_orchestrator.modular.prompts import Prompter
from vps_orchestrator.modular.registry import InstallerRegistry
from vps_orchestrator.settings.config_models import AppSettings
from vps_orchestrator.tools.preflight import PreflightReport, run_preflight

BANNER = "═" * 43

PreflightCheck = Callable[[Requirements, str], PreflightReport]


class InstallRole(Enum):
    TARGET = "target"
    DEPENDENCY = "dependency"
    OPTIONAL = "optional"


@dataclass
class InstallResult:
    """Outcome of one ``install`` run."""

    unit: str
    success: bool = False
    installed: List[str] = field(default_factory=list)
    already_installed: List[str] = field(default_factory=list)
    optional_installed: List[str] = field(default_factory=list)
    optional_skipped: List[str] = field(default_factory=list)
    optional_failed: List[str] = field(default_factory=list)
    failed_unit: Optional[str] = None
    error: Optional[str] = None

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1


class InstallerOrchestrator:
    """
    Runs installers in dependency order, asking the operator to confirm each
    step.

    Failure taxonomy:
      - a missing unit or a dependency cycle fails before anything runs;
      - a failed dependency can be overridden by the operator;
      - the operator can reject any step even when its installer succeeded;
      - optional dependency failures are only warnings.
    """

    def __init__(
        self,
        registry: InstallerRegistry,
        prompter: Prompter,
        app_settings: AppSettings,
        audit_log: Optional[AuditLog] = None,
        credential_store: Optional[CredentialStore] = None,
        preflight: Optional[PreflightCheck] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            registry: Registry holding every installable unit.
            prompter: Source of operator confirmations.
            app_settings: The application settings.
            audit_log: Optional audit log receiving one line per install.
            credential_store: Optional store used to show connection details
                after a successful install.
            preflight: Resource check run before installing a unit that
                declares requirements. Defaults to the host checks.
            logger: Optional logger instance.
        """
        self.registry = registry
        self.prompter = prompter
        self.app_settings = app_settings
        self.audit_log = audit_log
        self.credential_store = credential_store
        self.preflight = preflight or self._host_preflight
        self.logger = logger or logging.getLogger(
            f"{__name__}.{self.__class__.__name__}"
        )

    def _host_preflight(self, requirements: Requirements, unit_name: str) -> PreflightReport:
        return run_preflight(requirements, unit_name, current_logger=self.logger)

    def _log(self, message: str, level: str = "info", symbol: Optional[str] = None) -> None:
        if symbol:
            message = f"{self.app_settings.symbols.get(symbol, '')} {message}".lstrip()
        log_message(message, level, self.logger, self.app_settings)

    def _audit(self, action: str, unit: str, details: str = "", result: str = "SUCCESS") -> None:
        if self.audit_log is not None:
            self.audit_log.record(action, unit, details, result)

    def plan(self, unit_name: str) -> List[str]:
        """
        Required-dependency install order for a unit, ending with the unit.

        Raises:
            InstallerNotFoundError: If the unit or a dependency is unknown.
            CircularDependencyError: If the dependencies form a cycle.
        """
        return self.registry.resolve_dependencies([unit_name])

    def check_status(self, unit_names: Optional[List[str]] = None) -> Dict[str, bool]:
        """Probe each unit (all registered units by default)."""
        if unit_names is None:
            unit_names = list(self.registry.get_all_installers())
        return {
            name: self.registry.get_installer(name).is_installed()
            for name in unit_names
        }

    def install(self, unit_name: str) -> InstallResult:
        """
        Install a unit and everything it requires.

        Args:
            unit_name: Name of the requested unit.

        Returns:
            The outcome of the run. Never raises for unit failures.
        """
        result = InstallResult(unit=unit_name)

        try:
            installer = self.registry.get_installer(unit_name)
            order = self.plan(unit_name)
        except OrchestratorError as e:
            return self._fail(result, unit_name, str(e))

        self._log(BANNER)
        self._log(f"Installing: {unit_name}")
        self._log(BANNER)
        self.logger.debug(f"Resolved install order: {', '.join(order)}")

        if not self._preflight_confirmed(installer):
            self._audit("INSTALL_CANCELLED", unit_name, "pre-flight checks declined", "CANCELLED")
            return self._fail(result, unit_name, "Installation cancelled by user")

        try:
            self._install_unit(installer, InstallRole.TARGET, result)
        except InstallationError as e:
            return self._fail(result, e.unit, str(e))

        self._log("Checking optional enhancements...", "step", "step")
        self._install_optional_dependencies(installer, result)

        result.success = True
        self._show_credentials(unit_name)
        self._log(BANNER, "success")
        self._log(f"Installation Complete: {unit_name}", "success", "success")
        self._log(BANNER, "success")
        return result

    def _fail(self, result: InstallResult, unit: str, reason: str) -> InstallResult:
        result.success = False
        result.failed_unit = unit
        result.error = reason
        self._log(reason, "error", "error")
        return result

    def _preflight_confirmed(
        self, installer: BaseInstaller, question: str = "Continue with installation?"
    ) -> bool:
        requirements = installer.requirements
        if requirements is None or requirements.is_empty():
            return True
        self._log(f"Running pre-flight checks for {installer.name}...", "step", "step")
        report = self.preflight(requirements, installer.name)
        if report.ok:
            self._log("Pre-flight checks passed", "success", "success")
        else:
            self._log(
                f"Pre-flight checks found {len(report.issues)} issue(s)",
                "warning",
                "warning",
            )
        return self.prompter.confirm(question)

    def _install_unit(
        self,
        installer: BaseInstaller,
        role: InstallRole,
        result: InstallResult,
    ) -> None:
        """
        Satisfy the unit's required dependencies, then run its installer.

        Raises:
            InstallationError: If the chain must stop at this unit or below.
        """
        self._install_dependencies(installer, result)
        self._run_installer(installer, role, result)

    def _install_dependencies(self, installer: BaseInstaller, result: InstallResult) -> None:
        dependencies = installer.get_dependencies()
        if not dependencies:
            self._log(f"No dependencies required for: {installer.name}")
            return

        self._log(f"Dependencies found: {', '.join(dependencies)}", "step", "step")
        for dep_name in dependencies:
            if dep_name in result.installed or dep_name in result.already_installed:
                continue
            dependency = self.registry.get_installer(dep_name)
            if dependency.is_installed():
                self._log(f"Dependency already installed: {dep_name}", "success", "success")
                result.already_installed.append(dep_name)
                continue

            self._log(f"Dependency not installed: {dep_name}", "warning", "warning")
            self._log(f"Application '{installer.name}' requires '{dep_name}'")
            self._log(f"Installing dependency automatically: {dep_name}")
            self._install_unit(dependency, InstallRole.DEPENDENCY, result)
            self._log(f"Dependency confirmed: {dep_name}", "success", "success")

        self._log(f"All dependencies satisfied for: {installer.name}", "success", "success")

    def _run_installer(
        self,
        installer: BaseInstaller,
        role: InstallRole,
        result: InstallResult,
    ) -> None:
        name = installer.name
        label = f"{name} (main application)" if role is InstallRole.TARGET else name
        self._log(BANNER)
        self._log(f"  Starting installer: {label}")
        self._log(BANNER)

        # The target was checked before its dependencies started.
        if role is not InstallRole.TARGET and not self._preflight_confirmed(
            installer, f"Continue with installation of {name}?"
        ):
            self._audit("INSTALL_CANCELLED", name, f"pre-flight checks declined ({role.value})", "CANCELLED")
            raise InstallationError(name, "Installation cancelled by user")

        succeeded = installer.install()

        if not succeeded:
            self._log(f"Installer failed: {name}", "error", "error")
            if role is InstallRole.DEPENDENCY:
                if self.prompter.confirm("Continue anyway? (Not recommended)"):
                    self._log("Continuing despite error...", "warning", "warning")
                else:
                    self._audit("INSTALL", name, f"dependency of {result.unit}", "FAILED")
                    raise InstallationError(name, "Dependency installation failed; aborted by user")
            else:
                self._audit("INSTALL", name, "", "FAILED")
                raise InstallationError(name, "Installer exited with an error")

        if role is not InstallRole.OPTIONAL:
            self._log("Please verify the installation completed successfully.")
            self._log("Check the output above for any errors or warnings.")
            question = f"Did '{name}' install successfully?"
            if role is InstallRole.DEPENDENCY:
                question += " Continue with next dependency?"
            if not self.prompter.confirm(question):
                self._audit("INSTALL", name, "not confirmed by user", "FAILED")
                raise InstallationError(name, "Installation not confirmed by user")
            self._log(f"Installation confirmed by user: {name}", "success", "success")

        if role is InstallRole.DEPENDENCY:
            details = f"dependency of {result.unit}"
        elif role is InstallRole.OPTIONAL:
            details = f"optional for {result.unit}"
        else:
            details = ""
        self._audit("INSTALL", name, details, "SUCCESS" if succeeded else "OVERRIDDEN")
        result.installed.append(name)

    def _install_optional_dependencies(self, installer: BaseInstaller, result: InstallResult) -> None:
        optional = installer.get_optional_dependencies()
        if not optional:
            self._log(f"No optional enhancements for: {installer.name}")
            return

        self._log(f"Optional enhancements available: {', '.join(optional)}")
        for opt_name in optional:
            if opt_name in result.installed or opt_name in result.already_installed:
                continue
            try:
                opt_installer = self.registry.get_installer(opt_name)
            except OrchestratorError as e:
                self._log(f"Skipping optional dependency {opt_name}: {e}", "warning", "warning")
                result.optional_failed.append(opt_name)
                continue

            if opt_installer.is_installed():
                self._log(f"Optional dependency already installed: {opt_name}", "success", "success")
                continue

            self._log(BANNER)
            self._log("  Optional Enhancement Available")
            self._log(BANNER)
            self._log(f"Application: {opt_name}")
            self._log(f"Description: {opt_installer.get_description()}")
            self._log(f"Status: Not installed (optional for {installer.name})")

            if not self.prompter.confirm(
                f"Install {opt_name}? (Recommended for enhanced functionality)"
            ):
                self._log(f"Skipping optional dependency: {opt_name}")
                result.optional_skipped.append(opt_name)
                continue

            try:
                self.registry.resolve_dependencies([opt_name])
                self._install_unit(opt_installer, InstallRole.OPTIONAL, result)
            except OrchestratorError as e:
                self._log(f"Optional dependency installation had issues: {e}", "warning", "warning")
                self._log("You can install it later manually if needed")
                result.optional_failed.append(opt_name)
                continue

            self._log(f"Optional dependency installed: {opt_name}", "success", "success")
            result.optional_installed.append(opt_name)

    def _show_credentials(self, unit_name: str) -> None:
        if self.credential_store is None or not self.credential_store.has_credentials(unit_name):
            return
        self._log(f"Connection information for {unit_name}:", "info", "key")
        for key, value in self.credential_store.masked(unit_name).items():
            self._log(f"  {key}={value}")
