# tests/modular/test_catalog.py
# -*- coding: utf-8 -*-
"""
Tests for catalog parsing.
"""

from pathlib import Path

import pytest

from vps_orchestrator.modular.catalog import (
    BinaryProbeConfig,
    Catalog,
    ContainerProbeConfig,
    PackageProbeConfig,
    ServiceProbeConfig,
    UnitSpec,
    load_catalog,
    split_names,
)
from vps_orchestrator.modular.exceptions import CatalogError, InstallerNotFoundError

PROJECT_CATALOG = Path(__file__).resolve().parents[2] / "config_files" / "apps.yaml"


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, []),
        ("", []),
        ("docker-engine", ["docker-engine"]),
        (" docker-engine , postgres,,nginx ", ["docker-engine", "postgres", "nginx"]),
        (["a", " b ", ""], ["a", "b"]),
    ],
)
def test_split_names(value, expected):
    assert split_names(value) == expected


def test_unit_spec_defaults_to_container_probe():
    """Test units without a probe look for a container named after them."""
    spec = UnitSpec(name="portainer")

    assert isinstance(spec.probe, ContainerProbeConfig)
    assert spec.probe.container == "portainer"
    assert spec.dependencies == []
    assert spec.requirements.is_empty()


def test_unit_spec_rejects_blank_name():
    with pytest.raises(ValueError):
        UnitSpec(name="  ")


def test_unit_spec_rejects_unknown_fields():
    with pytest.raises(ValueError):
        UnitSpec(name="x", depends="y")


def test_load_yaml_catalog(tmp_path):
    """Test YAML catalogs accept lists and comma-separated strings."""
    path = tmp_path / "apps.yaml"
    path.write_text(
        """
units:
  nginx:
    category: infrastructure
    probe:
      type: service
      binaries: nginx
      services: nginx
  n8n:
    category: automation
    description: Workflow automation
    dependencies: docker-engine, postgres
    optional_dependencies: [ollama]
    requirements:
      disk_gb: 10
      ram_gb: 2
      ports: [5678]
""",
        encoding="utf-8",
    )

    catalog = load_catalog(path)

    assert catalog.names() == ["nginx", "n8n"]
    n8n = catalog.get("n8n")
    assert n8n.dependencies == ["docker-engine", "postgres"]
    assert n8n.optional_dependencies == ["ollama"]
    assert n8n.requirements.ports == [5678]
    assert n8n.requirements.disk_gb == 10
    nginx = catalog.get("nginx")
    assert isinstance(nginx.probe, ServiceProbeConfig)
    assert nginx.probe.services == ["nginx"]


def test_load_yaml_catalog_without_units_key(tmp_path):
    path = tmp_path / "apps.yml"
    path.write_text("certbot:\n  probe:\n    type: binary\n    binaries: certbot\n", encoding="utf-8")

    catalog = load_catalog(path)

    assert isinstance(catalog.get("certbot").probe, BinaryProbeConfig)


def test_load_conf_catalog(tmp_path):
    """Test the flat apps.conf format."""
    path = tmp_path / "apps.conf"
    path.write_text(
        """
[n8n]
category=automation
description=Workflow automation
dependencies=docker-engine,postgres,nginx,certbot
optional_dependencies=ollama
ports=5678
ram_gb=2

[wireguard]
probe=package
packages=wireguard-tools

[redis-docker]
container=redis
""",
        encoding="utf-8",
    )

    catalog = load_catalog(path)

    n8n = catalog.get("n8n")
    assert n8n.dependencies == ["docker-engine", "postgres", "nginx", "certbot"]
    assert n8n.optional_dependencies == ["ollama"]
    assert n8n.requirements.ports == [5678]
    assert n8n.requirements.ram_gb == 2
    assert isinstance(catalog.get("wireguard").probe, PackageProbeConfig)
    redis = catalog.get("redis-docker")
    assert isinstance(redis.probe, ContainerProbeConfig)
    assert redis.probe.container == "redis"


def test_load_catalog_missing_file(tmp_path):
    with pytest.raises(CatalogError, match="not found"):
        load_catalog(tmp_path / "missing.yaml")


def test_load_catalog_invalid_unit(tmp_path):
    """Test validation errors are reported as CatalogError."""
    path = tmp_path / "apps.yaml"
    path.write_text("units:\n  bad:\n    probe:\n      type: telepathy\n", encoding="utf-8")

    with pytest.raises(CatalogError, match="bad"):
        load_catalog(path)


def test_load_catalog_unparsable_yaml(tmp_path):
    path = tmp_path / "apps.yaml"
    path.write_text("units: [unclosed\n", encoding="utf-8")

    with pytest.raises(CatalogError):
        load_catalog(path)


def test_catalog_rejects_duplicates():
    with pytest.raises(CatalogError, match="declared twice"):
        Catalog([UnitSpec(name="a"), UnitSpec(name="a")])


def test_catalog_lookup_and_grouping():
    catalog = Catalog(
        [
            UnitSpec(name="nginx", category="infrastructure"),
            UnitSpec(name="postgres", category="databases"),
            UnitSpec(name="certbot", category="infrastructure"),
        ]
    )

    assert "nginx" in catalog
    assert len(catalog) == 3
    assert [u.name for u in catalog.by_category()["infrastructure"]] == ["nginx", "certbot"]
    with pytest.raises(InstallerNotFoundError):
        catalog.get("nope")


def test_shipped_catalog_is_valid():
    """Test the shipped catalog loads and declares every referenced unit."""
    catalog = load_catalog(PROJECT_CATALOG)

    n8n = catalog.get("n8n")
    assert n8n.dependencies == ["docker-engine", "postgres", "nginx", "certbot"]
    assert n8n.optional_dependencies == ["ollama"]
    for unit in catalog:
        for dependency in unit.dependencies + unit.optional_dependencies:
            assert dependency in catalog, f"{unit.name} -> {dependency}"
