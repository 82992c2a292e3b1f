# tests/modular/conftest.py
from typing import Dict, List, Optional

import pytest

from vps_orchestrator.modular.base_installer import BaseInstaller
from vps_orchestrator.modular.orchestrator import InstallerOrchestrator
from vps_orchestrator.modular.registry import InstallerRegistry


class FakeInstaller(BaseInstaller):
    """In-memory unit: installing flips it to installed when it succeeds."""

    def __init__(
        self,
        name,
        app_settings,
        dependencies=None,
        optional_dependencies=None,
        installed=False,
        succeeds=True,
        description="",
        requirements=None,
        install_log=None,
    ):
        super().__init__(
            name,
            app_settings,
            dependencies=dependencies,
            optional_dependencies=optional_dependencies,
            description=description,
            requirements=requirements,
        )
        self.installed = installed
        self.succeeds = succeeds
        self.install_log = install_log if install_log is not None else []
        self.probe_calls = 0

    def install(self) -> bool:
        self.install_log.append(self.name)
        if self.succeeds:
            self.installed = True
        return self.succeeds

    def is_installed(self) -> bool:
        self.probe_calls += 1
        return self.installed


class FakePrompter:
    """
    Answers questions from a table of question fragments.

    Questions matching no fragment get the default answer.
    """

    def __init__(self, default: bool = True, answers: Optional[Dict[str, bool]] = None):
        self.default = default
        self.answers = answers or {}
        self.questions: List[str] = []

    def confirm(self, question: str) -> bool:
        self.questions.append(question)
        for fragment, answer in self.answers.items():
            if fragment in question:
                return answer
        return self.default


@pytest.fixture
def install_log():
    """Names of units whose install action ran, in order."""
    return []


@pytest.fixture
def make_installer(app_settings, install_log):
    def _make(name, **kwargs):
        return FakeInstaller(name, app_settings, install_log=install_log, **kwargs)

    return _make


@pytest.fixture
def make_prompter():
    return FakePrompter


@pytest.fixture
def make_orchestrator(app_settings):
    def _make(installers, prompter=None, **kwargs):
        registry = InstallerRegistry()
        for installer in installers:
            registry.register(installer)
        return InstallerOrchestrator(
            registry,
            prompter if prompter is not None else FakePrompter(),
            app_settings,
            **kwargs,
        )

    return _make
