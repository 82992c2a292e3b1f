# tests/modular/test_registry.py
import pytest

from vps_orchestrator.modular.catalog import Catalog, UnitSpec
from vps_orchestrator.modular.exceptions import (
    CircularDependencyError,
    InstallerNotFoundError,
)
from vps_orchestrator.modular.registry import InstallerRegistry
from vps_orchestrator.modular.script_installer import ScriptInstaller


@pytest.fixture
def registry(make_installer):
    registry = InstallerRegistry()
    registry.register(make_installer("docker-engine"))
    registry.register(make_installer("nginx"))
    registry.register(make_installer("certbot", dependencies=["nginx"]))
    registry.register(make_installer("postgres", dependencies=["docker-engine"]))
    registry.register(
        make_installer(
            "n8n", dependencies=["docker-engine", "postgres", "nginx", "certbot"]
        )
    )
    return registry


def test_register_duplicate_name_raises(registry, make_installer):
    """Test registering a second installer under the same name fails."""
    with pytest.raises(ValueError, match="already registered"):
        registry.register(make_installer("nginx"))


def test_get_installer_unknown_raises(registry):
    """Test lookups are exact and raise for unknown names."""
    with pytest.raises(InstallerNotFoundError) as excinfo:
        registry.get_installer("Nginx")
    assert excinfo.value.name == "Nginx"
    assert isinstance(excinfo.value, KeyError)


def test_get_installer_dependencies_keeps_declared_order(registry):
    assert registry.get_installer_dependencies("n8n") == [
        "docker-engine",
        "postgres",
        "nginx",
        "certbot",
    ]


def test_resolve_dependencies_orders_each_unit_once(registry):
    """Test resolution is depth-first in declared order without repeats."""
    assert registry.resolve_dependencies(["n8n", "certbot"]) == [
        "docker-engine",
        "postgres",
        "nginx",
        "certbot",
        "n8n",
    ]


def test_resolve_dependencies_detects_cycle(make_installer):
    """Test a cycle is reported with the full path."""
    registry = InstallerRegistry()
    registry.register(make_installer("a", dependencies=["b"]))
    registry.register(make_installer("b", dependencies=["c"]))
    registry.register(make_installer("c", dependencies=["a"]))

    with pytest.raises(CircularDependencyError) as excinfo:
        registry.resolve_dependencies(["a"])

    assert excinfo.value.cycle == ["a", "b", "c", "a"]


def test_resolve_dependencies_detects_self_dependency(make_installer):
    registry = InstallerRegistry()
    registry.register(make_installer("a", dependencies=["a"]))

    with pytest.raises(CircularDependencyError):
        registry.resolve_dependencies(["a"])


def test_resolve_dependencies_missing_dependency(make_installer):
    registry = InstallerRegistry()
    registry.register(make_installer("app", dependencies=["ghost"]))

    with pytest.raises(InstallerNotFoundError, match="ghost"):
        registry.resolve_dependencies(["app"])


def test_from_catalog_builds_script_installers(app_settings):
    """Test every catalog entry becomes a ScriptInstaller."""
    catalog = Catalog(
        [
            UnitSpec(name="nginx", category="infrastructure"),
            UnitSpec(name="certbot", dependencies="nginx"),
        ]
    )

    registry = InstallerRegistry.from_catalog(catalog, app_settings)

    assert len(registry) == 2
    assert "certbot" in registry
    installer = registry.get_installer("certbot")
    assert isinstance(installer, ScriptInstaller)
    assert installer.get_dependencies() == ["nginx"]
    assert set(registry.get_all_installers()) == {"nginx", "certbot"}
