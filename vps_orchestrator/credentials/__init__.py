from vps_orchestrator.credentials.audit import AuditLog
from vps_orchestrator.credentials.backup import CredentialBackupManager
from vps_orchestrator.credentials.generators import (
    generate_db_name,
    generate_secure_password,
)
from vps_orchestrator.credentials.store import (
    CredentialsNotFoundError,
    CredentialStore,
    FileCredentialStore,
    StoredCredentials,
    mask_value,
)

__all__ = [
    "AuditLog",
    "CredentialBackupManager",
    "CredentialStore",
    "CredentialsNotFoundError",
    "FileCredentialStore",
    "StoredCredentials",
    "generate_db_name",
    "generate_secure_password",
    "mask_value",
]
