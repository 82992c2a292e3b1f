# vps_orchestrator/modular/probes.py
# -*- coding: utf-8 -*-
"""
Installed-probes.

A probe answers "is this unit already present and active on the host?".
The strategy is chosen per unit in the catalog. Probes never raise: a command
that is missing or fails means "not installed".

By default probes only observe. With ``probe_autostart`` enabled, a service
or container that exists but is stopped is started and checked again.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import List, Optional

from vps_orchestrator.common.command_utils import (
    check_package_installed,
    command_exists,
    log_message,
)
from vps_orchestrator.common.system_utils import (
    container_runtime_available,
    is_service_active,
    list_containers,
    start_container,
    start_service,
)
from vps_orchestrator.modular.catalog import (
    BinaryProbeConfig,
    ContainerProbeConfig,
    PackageProbeConfig,
    ProbeConfig,
    ServiceProbeConfig,
)
from vps_orchestrator.settings.config_models import AppSettings

module_logger = logging.getLogger(__name__)


class InstallProbe(ABC):
    """Strategy interface for detecting an installed unit."""

    def __init__(
        self,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        self.app_settings = app_settings
        self.logger = logger or module_logger

    @abstractmethod
    def check(self) -> bool:
        """Return True if the unit is present (and active, where relevant)."""

    def _settle(self) -> None:
        if self.app_settings.probe_settle_seconds > 0:
            time.sleep(self.app_settings.probe_settle_seconds)


class BinaryProbe(InstallProbe):
    def __init__(
        self,
        binaries: List[str],
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(app_settings, logger)
        self.binaries = list(binaries)

    def check(self) -> bool:
        return any(command_exists(binary) for binary in self.binaries)

    def __repr__(self) -> str:
        return f"BinaryProbe({self.binaries!r})"


class ServiceProbe(InstallProbe):
    """An executable on PATH plus an active systemd service."""

    def __init__(
        self,
        binaries: List[str],
        services: List[str],
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(app_settings, logger)
        self.binaries = list(binaries)
        self.services = list(services)

    def _any_active(self) -> bool:
        return any(
            is_service_active(service, self.app_settings, self.logger)
            for service in self.services
        )

    def check(self) -> bool:
        if not any(command_exists(binary) for binary in self.binaries):
            return False
        if self._any_active():
            return True
        if not self.app_settings.probe_autostart:
            return False

        symbols = self.app_settings.symbols
        for service in self.services:
            log_message(
                f"{symbols.get('info', 'ℹ️')} Service {service} is installed but not running, starting it...",
                "info",
                self.logger,
                self.app_settings,
            )
            if start_service(service, self.app_settings, self.logger):
                break
        self._settle()
        return self._any_active()

    def __repr__(self) -> str:
        return f"ServiceProbe({self.binaries!r}, {self.services!r})"


class ContainerProbe(InstallProbe):
    """A container with the given name exists and is running."""

    def __init__(
        self,
        container: str,
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(app_settings, logger)
        self.container = container

    def _is_running(self) -> bool:
        return self.container in list_containers(
            self.app_settings, include_stopped=False, current_logger=self.logger
        )

    def check(self) -> bool:
        if not container_runtime_available(self.app_settings, self.logger):
            return False
        if self._is_running():
            return True
        if not self.app_settings.probe_autostart:
            return False
        if self.container not in list_containers(
            self.app_settings, include_stopped=True, current_logger=self.logger
        ):
            return False

        symbols = self.app_settings.symbols
        log_message(
            f"{symbols.get('info', 'ℹ️')} Container {self.container} exists but is stopped, starting it...",
            "info",
            self.logger,
            self.app_settings,
        )
        start_container(self.container, self.app_settings, self.logger)
        self._settle()
        return self._is_running()

    def __repr__(self) -> str:
        return f"ContainerProbe({self.container!r})"


class PackageProbe(InstallProbe):
    def __init__(
        self,
        packages: List[str],
        app_settings: AppSettings,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(app_settings, logger)
        self.packages = list(packages)

    def check(self) -> bool:
        if not self.packages:
            return False
        return all(
            check_package_installed(pkg, self.app_settings, self.logger)
            for pkg in self.packages
        )

    def __repr__(self) -> str:
        return f"PackageProbe({self.packages!r})"


def build_probe(
    config: ProbeConfig,
    app_settings: AppSettings,
    logger: Optional[logging.Logger] = None,
) -> InstallProbe:
    """
    Create the probe described by a catalog probe configuration.

    Raises:
        ValueError: For a configuration type with no probe implementation.
    """
    if isinstance(config, BinaryProbeConfig):
        return BinaryProbe(config.binaries, app_settings, logger)
    if isinstance(config, ServiceProbeConfig):
        return ServiceProbe(
            config.binaries, config.services, app_settings, logger
        )
    if isinstance(config, ContainerProbeConfig):
        if not config.container:
            raise ValueError("Container probe requires a container name")
        return ContainerProbe(config.container, app_settings, logger)
    if isinstance(config, PackageProbeConfig):
        return PackageProbe(config.packages, app_settings, logger)
    raise ValueError(f"Unsupported probe configuration: {config!r}")
