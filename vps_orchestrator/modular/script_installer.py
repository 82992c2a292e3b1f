# vps_orchestrator/modular/script_installer.py
# -*- coding: utf-8 -*-
"""
Catalog-backed installer that runs a unit's install script.

The script is an external collaborator: it is run with no arguments, its
output goes straight to the operator's terminal, and a non-zero exit status
means the install failed.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from vps_orchestrator.common.command_utils import log_message, run_command
from vps_orchestrator.modular.base_installer import BaseInstaller
from vps_orchestrator.modular.catalog import UnitSpec
from vps_orchestrator.modular.probes import InstallProbe, build_probe
from vps_orchestrator.settings.config_models import AppSettings

INSTALL_SCRIPT_NAME = "install.sh"


class ScriptInstaller(BaseInstaller):
    """
    Installer for a unit declared in the catalog.

    The install action is ``<shell> <script>``; the installed-probe is the
    strategy declared for the unit.
    """

    def __init__(
        self,
        spec: UnitSpec,
        app_settings: AppSettings,
        probe: InstallProbe,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(
            spec.name,
            app_settings,
            dependencies=spec.dependencies,
            optional_dependencies=spec.optional_dependencies,
            description=spec.description,
            category=spec.category,
            requirements=spec.requirements,
            logger=logger,
        )
        self.spec = spec
        self.probe = probe
        self.last_exit_code: Optional[int] = None

    @classmethod
    def from_spec(
        cls,
        spec: UnitSpec,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ) -> "ScriptInstaller":
        probe = build_probe(spec.probe, app_settings, logger)
        return cls(spec, app_settings, probe, logger)

    def find_script(self) -> Optional[Path]:
        """
        Locate the install script.

        An explicit ``script`` in the catalog wins. Otherwise the script is
        ``<apps_dir>/<category>/<name>/install.sh``, falling back to the first
        ``<apps_dir>/*/<name>/install.sh`` so units may live in any category
        directory.
        """
        if self.spec.script is not None:
            script = Path(self.spec.script)
            if not script.is_absolute():
                script = Path.cwd() / script
            return script if script.is_file() else None

        apps_dir = Path(self.app_settings.apps_dir)
        preferred = apps_dir / self.category / self.name / INSTALL_SCRIPT_NAME
        if preferred.is_file():
            return preferred
        for candidate in sorted(apps_dir.glob(f"*/{self.name}/{INSTALL_SCRIPT_NAME}")):
            if candidate.is_file():
                return candidate
        return None

    def _script_environment(self) -> dict:
        env = os.environ.copy()
        env["VPS_SECRETS_DIR"] = str(self.app_settings.secrets_dir)
        if self.app_settings.assume_yes:
            env["FORCE_YES"] = "1"
        return env

    def install(self) -> bool:
        symbols = self.app_settings.symbols
        self.last_exit_code = None

        script = self.find_script()
        if script is None:
            log_message(
                f"{symbols.get('error', '❌')} Cannot find installer for: {self.name}",
                "error",
                self.logger,
                self.app_settings,
            )
            log_message(
                f"   Expected location: {self.app_settings.apps_dir}/*/{self.name}/{INSTALL_SCRIPT_NAME}",
                "error",
                self.logger,
                self.app_settings,
            )
            return False

        script = script.resolve()
        try:
            result = run_command(
                [self.app_settings.shell, str(script)],
                self.app_settings,
                check=False,
                current_logger=self.logger,
                cwd=str(script.parent),
                env=self._script_environment(),
            )
        except FileNotFoundError:
            return False

        self.last_exit_code = result.returncode
        log_message(
            f"{symbols.get('info', 'ℹ️')} Installer finished: {self.name} (exit code: {result.returncode})",
            "info",
            self.logger,
            self.app_settings,
        )
        return result.returncode == 0

    def is_installed(self) -> bool:
        return self.probe.check()
