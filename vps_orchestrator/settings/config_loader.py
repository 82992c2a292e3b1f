# vps_orchestrator/settings/config_loader.py
# -*- coding: utf-8 -*-
"""
Configuration loader for the orchestrator.

Handles loading settings from Pydantic model defaults, YAML files,
environment variables, and command-line arguments, applying a specific
order of precedence:
1. Pydantic Model Defaults
2. Environment Variables (VPS_*, loaded by BaseSettings)
3. YAML Configuration File
4. Command-Line Arguments
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from .config_models import AppSettings

module_logger = logging.getLogger(__name__)

CONFIG_FILE_DEFAULT = "config.yaml"


def _deep_update(
    source: Dict[str, Any], overrides: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Recursively updates `source` with values from `overrides`.

    Nested dictionaries are merged key by key. A ``None`` override never
    replaces an existing value.

    Args:
        source: The dictionary to be updated. Modified in place.
        overrides: The dictionary containing values to update or add.

    Returns:
        The updated dictionary.
    """
    for key, value in overrides.items():
        if (
            isinstance(value, dict)
            and key in source
            and isinstance(source[key], dict)
        ):
            source[key] = _deep_update(source[key], value)
        elif value is not None:
            source[key] = value
        elif key not in source:
            source[key] = value
    return source


def _read_yaml_config(
    config_path: Path, logger_to_use: logging.Logger
) -> Dict[str, Any]:
    if not config_path.is_file():
        logger_to_use.debug(
            f"Configuration file '{config_path}' not found. Using defaults and environment variables."
        )
        return {}

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger_to_use.warning(
            f"Could not parse YAML config file '{config_path}': {e}. Using defaults and environment variables."
        )
        return {}
    except IOError as e:
        logger_to_use.warning(
            f"Could not read config file '{config_path}': {e}. Using defaults and environment variables."
        )
        return {}

    if yaml_data is None:
        return {}
    if not isinstance(yaml_data, dict):
        logger_to_use.warning(
            f"Config file '{config_path}' does not contain a valid YAML dictionary. Ignoring."
        )
        return {}

    logger_to_use.info(f"Loaded configuration from {config_path}")
    return yaml_data


def _automation_requested() -> bool:
    return (
        os.environ.get("FORCE_YES", "0") == "1"
        or os.environ.get("CI", "") == "true"
    )


def load_app_settings(
    cli_overrides: Optional[Dict[str, Any]] = None,
    config_file_path: Optional[Path] = None,
    current_logger: Optional[logging.Logger] = None,
) -> AppSettings:
    """
    Loads application settings with the following precedence:
    1. Pydantic Model Defaults.
    2. Environment variables with the ``VPS_`` prefix. ``FORCE_YES=1`` and
       ``CI=true`` also switch on automation mode.
    3. Values from the YAML configuration file.
    4. Command-line overrides (highest precedence). ``None`` values are
       ignored so unset options never mask lower layers.

    Args:
        cli_overrides: Setting names mapped to values given on the command line.
        config_file_path: Path to the YAML configuration file. Defaults to
            ``config.yaml`` in the working directory.
        current_logger: Optional logger to use instead of the module logger.

    Returns:
        An instance of AppSettings with the fully resolved configuration.

    Raises:
        SystemExit: If the merged configuration fails validation.
    """
    logger_to_use = current_logger if current_logger else module_logger

    try:
        settings_after_env_and_defaults = AppSettings()
    except ValidationError as e:
        logger_to_use.error(f"Configuration validation failed: {e}")
        raise SystemExit(f"Configuration error: {e}") from e

    current_values_dict = settings_after_env_and_defaults.model_dump(
        exclude_defaults=False
    )
    if _automation_requested():
        current_values_dict["assume_yes"] = True

    yaml_config_path = (
        Path(config_file_path)
        if config_file_path
        else Path.cwd() / CONFIG_FILE_DEFAULT
    )
    current_values_dict = _deep_update(
        current_values_dict, _read_yaml_config(yaml_config_path, logger_to_use)
    )

    if cli_overrides:
        current_values_dict = _deep_update(
            current_values_dict,
            {k: v for k, v in cli_overrides.items() if v is not None},
        )

    try:
        final_settings = AppSettings(**current_values_dict)
    except ValidationError as e:
        logger_to_use.error(f"Configuration validation failed: {e}")
        raise SystemExit(f"Configuration error: {e}") from e

    logger_to_use.debug(
        "Successfully loaded and validated application settings"
    )
    return final_settings
