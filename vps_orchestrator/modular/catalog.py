# vps_orchestrator/modular/catalog.py
# -*- coding: utf-8 -*-
"""
Static unit catalog.

Every installable unit is declared here with its required and optional
dependencies, its description, how to detect that it is installed, and what
resources it needs. Two file formats are accepted: YAML, and the flat
``apps.conf`` format of one ``[unit]`` section per unit with ``key=value``
lines. In both, dependency lists may be written as comma-separated strings.
"""

import configparser
import logging
from pathlib import Path
from typing import (
    Annotated,
    Any,
    Dict,
    Iterable,
    Iterator,
    List,
    Literal,
    Optional,
    Union,
)

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from vps_orchestrator.modular.exceptions import (
    CatalogError,
    InstallerNotFoundError,
)

module_logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "misc"


def split_names(value: Any) -> List[str]:
    """
    Normalise a comma-separated string or a list into a list of names.

    Whitespace is trimmed and empty items are dropped; ``None`` is an empty
    list.
    """
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        return value
    return [str(item).strip() for item in items if str(item).strip()]


class _NameListModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class BinaryProbeConfig(_NameListModel):
    """Installed when any of the executables is on PATH."""

    type: Literal["binary"] = "binary"
    binaries: List[str]

    @field_validator("binaries", mode="before")
    @classmethod
    def split_binaries(cls, value: Any) -> Any:
        return split_names(value)


class ServiceProbeConfig(_NameListModel):
    """Installed when an executable is on PATH and a systemd service is active."""

    type: Literal["service"] = "service"
    binaries: List[str]
    services: List[str]

    @field_validator("binaries", "services", mode="before")
    @classmethod
    def split_lists(cls, value: Any) -> Any:
        return split_names(value)


class ContainerProbeConfig(_NameListModel):
    """Installed when a container with this name exists and is running."""

    type: Literal["container"] = "container"
    container: Optional[str] = None


class PackageProbeConfig(_NameListModel):
    """Installed when every Debian package is installed."""

    type: Literal["package"] = "package"
    packages: List[str]

    @field_validator("packages", mode="before")
    @classmethod
    def split_packages(cls, value: Any) -> Any:
        return split_names(value)


ProbeConfig = Annotated[
    Union[
        BinaryProbeConfig,
        ServiceProbeConfig,
        ContainerProbeConfig,
        PackageProbeConfig,
    ],
    Field(discriminator="type"),
]


class Requirements(_NameListModel):
    """Pre-flight resource requirements of a unit."""

    disk_gb: float = 0
    ram_gb: float = 0
    ports: List[int] = Field(default_factory=list)

    @field_validator("ports", mode="before")
    @classmethod
    def split_ports(cls, value: Any) -> Any:
        return split_names(value)

    def is_empty(self) -> bool:
        return not (self.disk_gb or self.ram_gb or self.ports)


class UnitSpec(BaseModel):
    """A unit as declared in the catalog."""

    model_config = ConfigDict(extra="forbid")

    name: str
    category: str = DEFAULT_CATEGORY
    description: str = ""
    dependencies: List[str] = Field(default_factory=list)
    optional_dependencies: List[str] = Field(default_factory=list)
    probe: Optional[ProbeConfig] = None
    script: Optional[Path] = None
    requirements: Requirements = Field(default_factory=Requirements)

    @field_validator("dependencies", "optional_dependencies", mode="before")
    @classmethod
    def split_dependencies(cls, value: Any) -> Any:
        return split_names(value)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("unit name must not be empty")
        return value

    @model_validator(mode="after")
    def default_probe(self) -> "UnitSpec":
        # Units without an explicit probe are containers named after the unit.
        if self.probe is None:
            self.probe = ContainerProbeConfig(container=self.name)
        elif (
            isinstance(self.probe, ContainerProbeConfig)
            and not self.probe.container
        ):
            self.probe.container = self.name
        return self


class Catalog:
    """
    Ordered, read-only collection of unit declarations keyed by exact name.
    """

    def __init__(self, units: Iterable[UnitSpec]):
        self._units: Dict[str, UnitSpec] = {}
        for unit in units:
            if unit.name in self._units:
                raise CatalogError(f"Unit '{unit.name}' is declared twice")
            self._units[unit.name] = unit

    def get(self, name: str) -> UnitSpec:
        try:
            return self._units[name]
        except KeyError:
            raise InstallerNotFoundError(name) from None

    def names(self) -> List[str]:
        return list(self._units)

    def by_category(self) -> Dict[str, List[UnitSpec]]:
        grouped: Dict[str, List[UnitSpec]] = {}
        for unit in self._units.values():
            grouped.setdefault(unit.category, []).append(unit)
        return grouped

    def __contains__(self, name: object) -> bool:
        return name in self._units

    def __iter__(self) -> Iterator[UnitSpec]:
        return iter(self._units.values())

    def __len__(self) -> int:
        return len(self._units)


_PROBE_KEYS = ("binaries", "services", "container", "packages")
_REQUIREMENT_KEYS = ("disk_gb", "ram_gb", "ports")


def _section_to_fields(section: configparser.SectionProxy) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    probe: Dict[str, Any] = {}
    requirements: Dict[str, Any] = {}
    for key, value in section.items():
        if key == "probe":
            probe["type"] = value.strip()
        elif key in _PROBE_KEYS:
            probe[key] = value.strip()
        elif key in _REQUIREMENT_KEYS:
            requirements[key] = value.strip()
        else:
            fields[key] = value.strip()
    if probe:
        probe.setdefault("type", "container")
        fields["probe"] = probe
    if requirements:
        fields["requirements"] = requirements
    return fields


def _read_conf(path: Path) -> Dict[str, Dict[str, Any]]:
    parser = configparser.ConfigParser(
        interpolation=None, default_section="__defaults__"
    )
    try:
        with open(path, "r", encoding="utf-8") as f:
            parser.read_file(f)
    except configparser.Error as e:
        raise CatalogError(f"Could not parse catalog '{path}': {e}") from e
    return {name: _section_to_fields(parser[name]) for name in parser.sections()}


def _read_yaml(path: Path) -> Dict[str, Dict[str, Any]]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise CatalogError(f"Could not parse catalog '{path}': {e}") from e

    if data is None:
        return {}
    if isinstance(data, dict) and "units" in data:
        data = data["units"] or {}
    if not isinstance(data, dict):
        raise CatalogError(
            f"Catalog '{path}' must map unit names to their settings"
        )
    return {str(name): (fields or {}) for name, fields in data.items()}


def load_catalog(
    path: Union[str, Path],
    current_logger: Optional[logging.Logger] = None,
) -> Catalog:
    """
    Load the unit catalog from `path`.

    ``.yaml``/``.yml`` files are read as YAML; anything else is read as the
    flat ``apps.conf`` format.

    Raises:
        CatalogError: If the file is missing, unparsable or invalid.
    """
    logger_to_use = current_logger if current_logger else module_logger
    path = Path(path)
    if not path.is_file():
        raise CatalogError(f"Catalog file not found: {path}")

    try:
        if path.suffix in (".yaml", ".yml"):
            raw_units = _read_yaml(path)
        else:
            raw_units = _read_conf(path)
    except OSError as e:
        raise CatalogError(f"Could not read catalog '{path}': {e}") from e

    units = []
    for name, fields in raw_units.items():
        if not isinstance(fields, dict):
            raise CatalogError(f"Unit '{name}' in '{path}' is not a mapping")
        try:
            units.append(UnitSpec(name=name, **fields))
        except (ValidationError, TypeError) as e:
            raise CatalogError(f"Invalid unit '{name}' in '{path}': {e}") from e

    catalog = Catalog(units)
    logger_to_use.debug(f"Loaded {len(catalog)} units from {path}")
    return catalog
