"""
Archive backups of the credential store.
"""

import logging
import os
import tarfile
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from vps_orchestrator.credentials.audit import AuditLog
from vps_orchestrator.credentials.store import (
    BACKUP_TIMESTAMP_FORMAT,
    ENV_FILE_PREFIX,
    FileCredentialStore,
)

module_logger = logging.getLogger(__name__)

ARCHIVE_PREFIX = "credentials_"
ARCHIVE_SUFFIX = ".tar.gz"


class CredentialBackupManager:
    """Creates, prunes and restores ``credentials_<ts>.tar.gz`` archives."""

    def __init__(
        self,
        store: FileCredentialStore,
        keep: int = 10,
        audit_log: Optional[AuditLog] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.keep = keep
        self.audit_log = audit_log
        self.logger = logger or module_logger

    @property
    def backup_dir(self) -> Path:
        return self.store.backup_dir

    def list_backups(self) -> List[Path]:
        """Archives, newest first."""
        if not self.backup_dir.is_dir():
            return []
        return sorted(
            self.backup_dir.glob(f"{ARCHIVE_PREFIX}*{ARCHIVE_SUFFIX}"),
            key=lambda p: p.name,
            reverse=True,
        )

    def _new_archive_path(self) -> Path:
        stamp = datetime.now().strftime(BACKUP_TIMESTAMP_FORMAT)
        target = self.backup_dir / f"{ARCHIVE_PREFIX}{stamp}{ARCHIVE_SUFFIX}"
        counter = 1
        while target.exists():
            target = self.backup_dir / f"{ARCHIVE_PREFIX}{stamp}_{counter}{ARCHIVE_SUFFIX}"
            counter += 1
        return target

    def backup_all(self) -> Optional[Path]:
        """
        Archive every credential file.

        Returns:
            The archive path, or None when there was nothing to back up.
        """
        files = self.store.credential_files()
        if not files:
            self.logger.warning("No credentials to back up")
            return None

        self.backup_dir.mkdir(parents=True, exist_ok=True)
        os.chmod(self.backup_dir, 0o700)
        archive = self._new_archive_path()
        with tarfile.open(archive, "w:gz") as tar:
            for path in files:
                tar.add(str(path), arcname=path.name)
        os.chmod(archive, 0o600)
        self.logger.info(f"Credentials backed up to: {archive}")

        self._prune()
        if self.audit_log is not None:
            self.audit_log.record("BACKUP_CREDENTIALS", "all", f"{len(files)} files")
        return archive

    def _prune(self) -> List[Path]:
        removed = []
        for old in self.list_backups()[self.keep:]:
            old.unlink()
            removed.append(old)
        if removed:
            self.logger.debug(f"Pruned {len(removed)} old credential backups")
        return removed

    def cleanup_old_backups(self, retention_days: int) -> List[Path]:
        """Delete archives whose modification time is older than `retention_days`."""
        cutoff = time.time() - retention_days * 86400
        removed = []
        for archive in self.list_backups():
            if archive.stat().st_mtime < cutoff:
                archive.unlink()
                removed.append(archive)
        if removed:
            self.logger.info(f"Removed {len(removed)} credential backups older than {retention_days} days")
        return removed

    def restore(self, backup_file: Path) -> List[str]:
        """
        Restore credential files from an archive.

        Only plain ``.env_*`` members at the archive root are extracted;
        anything else is ignored.

        Returns:
            The names of the restored files.

        Raises:
            FileNotFoundError: If the archive does not exist.
        """
        backup_file = Path(backup_file)
        if not backup_file.is_file():
            raise FileNotFoundError(f"Backup file not found: {backup_file}")

        self.store.ensure_dir()
        restored = []
        with tarfile.open(backup_file, "r:gz") as tar:
            for member in tar.getmembers():
                name = member.name
                if (
                    not member.isfile()
                    or "/" in name
                    or "\\" in name
                    or not name.startswith(ENV_FILE_PREFIX)
                ):
                    self.logger.warning(f"Skipping unexpected archive member: {name}")
                    continue
                source = tar.extractfile(member)
                if source is None:
                    continue
                target = self.store.secrets_dir / name
                with source:
                    data = source.read()
                with open(target, "wb") as f:
                    f.write(data)
                os.chmod(target, 0o600)
                restored.append(name)

        self.logger.info(f"Restored {len(restored)} credential files from {backup_file}")
        if self.audit_log is not None:
            self.audit_log.record("RESTORE_CREDENTIALS", "all", f"from {backup_file.name}")
        return restored
