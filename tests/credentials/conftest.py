# tests/credentials/conftest.py
import pytest

from vps_orchestrator.credentials.audit import AuditLog
from vps_orchestrator.credentials.store import FileCredentialStore


@pytest.fixture
def audit_log(tmp_path):
    return AuditLog(tmp_path / "secrets" / ".audit.log")


@pytest.fixture
def store(tmp_path, audit_log):
    return FileCredentialStore(tmp_path / "secrets", audit_log=audit_log)
