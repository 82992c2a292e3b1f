# tests/conftest.py
import logging
from unittest.mock import MagicMock

import pytest

from vps_orchestrator.settings.config_models import AppSettings


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch):
    """Keep the caller's automation and VPS_* settings out of the tests."""
    for name in ("FORCE_YES", "CI", "VPS_LOG_LEVEL", "VPS_ASSUME_YES", "VPS_SECRETS_DIR"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def app_settings(tmp_path):
    """AppSettings pointing every path at a temporary directory."""
    return AppSettings(
        apps_dir=tmp_path / "apps",
        catalog_path=tmp_path / "apps.yaml",
        secrets_dir=tmp_path / "secrets",
        backup_root=tmp_path / "backups",
        probe_settle_seconds=0,
        container_runtime_command="docker",
    )


@pytest.fixture
def mock_logger():
    """Fixture to create a mock logger for testing."""
    return MagicMock(spec=logging.Logger)
