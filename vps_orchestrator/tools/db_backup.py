# vps_orchestrator/tools/db_backup.py
# -*- coding: utf-8 -*-
"""
Compressed dumps of the containerised databases.

Each engine gets its own directory under the backup root. Dumps are taken
with the engine's own tool inside the running container, using the
credentials the unit's installer stored.
"""

import gzip
import logging
import os
import shutil
import subprocess
import tempfile
import time
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from vps_orchestrator.common.command_utils import _get_elevated_command_prefix, log_message
from vps_orchestrator.common.system_utils import format_bytes, list_containers
from vps_orchestrator.credentials.audit import AuditLog
from vps_orchestrator.credentials.store import CredentialStore
from vps_orchestrator.settings.config_models import AppSettings

module_logger = logging.getLogger(__name__)

ENGINES = ("postgres", "mariadb", "mongodb")
DUMP_SUFFIXES = (".sql.gz", ".archive.gz", ".tar.gz")


class DatabaseBackupManager:
    def __init__(
        self,
        app_settings: AppSettings,
        store: CredentialStore,
        audit_log: Optional[AuditLog] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.app_settings = app_settings
        self.store = store
        self.audit_log = audit_log
        self.logger = logger or module_logger

    @property
    def backup_root(self) -> Path:
        return Path(self.app_settings.backup_root)

    def engine_dir(self, engine: str) -> Path:
        return self.backup_root / engine

    def _container_running(self, container: str) -> bool:
        return container in list_containers(self.app_settings, current_logger=self.logger)

    def _dump(
        self,
        engine: str,
        file_prefix: str,
        suffix: str,
        command: List[str],
        secrets: Optional[Dict[str, str]] = None,
    ) -> Optional[Path]:
        """
        Stream `command`'s stdout through gzip into the engine's backup directory.

        Secrets travel in the process environment and reach the container
        through value-less ``-e NAME`` flags, so they never appear in argv.
        The dump is written under a ``.partial`` name and renamed once the
        command succeeded; failed dumps leave nothing behind.
        """
        symbols = self.app_settings.symbols
        secrets = secrets or {}
        prefix = _get_elevated_command_prefix()
        if prefix and secrets:
            prefix = prefix + [f"--preserve-env={','.join(secrets)}"]
        env = {**os.environ, **secrets}

        target_dir = self.engine_dir(engine)
        target_dir.mkdir(parents=True, exist_ok=True)
        os.chmod(target_dir, 0o700)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        target = target_dir / f"{file_prefix}_{stamp}{suffix}"
        partial = target.with_name(target.name + ".partial")

        log_message(
            f"{symbols.get('gear', '⚙️')} Executing: {subprocess.list2cmdline(command)}",
            "info",
            self.logger,
            self.app_settings,
        )
        process = None
        stderr = ""
        try:
            with tempfile.TemporaryFile() as errors, gzip.open(partial, "wb") as out:
                os.chmod(partial, 0o600)
                process = subprocess.Popen(
                    prefix + command, stdout=subprocess.PIPE, stderr=errors, env=env
                )
                shutil.copyfileobj(process.stdout, out)
                process.stdout.close()
                returncode = process.wait()
                errors.seek(0)
                stderr = errors.read().decode("utf-8", errors="replace").strip()
        except OSError as e:
            if process is not None and process.poll() is None:
                process.kill()
                process.wait()
            self.logger.error(f"{engine} backup could not be written: {e}")
            returncode = None

        if returncode != 0:
            partial.unlink(missing_ok=True)
            if returncode is not None:
                log_message(
                    f"{symbols.get('error', '❌')} {engine} backup failed (exit code: {returncode})",
                    "error",
                    self.logger,
                    self.app_settings,
                )
                if stderr:
                    self.logger.error(f"   stderr: {stderr}")
            if self.audit_log is not None:
                self.audit_log.record("BACKUP_DATABASE", engine, "", "FAILED")
            return None

        partial.replace(target)
        size = format_bytes(target.stat().st_size)
        log_message(
            f"{symbols.get('success', '✅')} {engine} backup created: {target} ({size})",
            "success",
            self.logger,
            self.app_settings,
        )
        if self.audit_log is not None:
            self.audit_log.record("BACKUP_DATABASE", engine, f"Size: {size}")
        return target

    def backup_postgres(self) -> Optional[Path]:
        """Dump every PostgreSQL database with ``pg_dumpall``."""
        self.logger.info("Backing up PostgreSQL databases...")
        if not self._container_running("postgres"):
            self.logger.warning("PostgreSQL container not running")
            return None
        user = self.store.get("postgres", "POSTGRES_USER")
        password = self.store.get("postgres", "DB_PASSWORD") or ""
        if not user:
            self.logger.error("PostgreSQL credentials not found")
            return None
        runtime = self.app_settings.container_runtime_command
        return self._dump(
            "postgres",
            "pg_backup",
            ".sql.gz",
            [runtime, "exec", "-e", "PGPASSWORD", "postgres", "pg_dumpall", "-U", user],
            {"PGPASSWORD": password},
        )

    def backup_mariadb(self) -> Optional[Path]:
        """Dump every MariaDB database with ``mysqldump --all-databases``."""
        self.logger.info("Backing up MariaDB databases...")
        if not self._container_running("mariadb"):
            self.logger.warning("MariaDB container not running")
            return None
        user = self.store.get("mariadb", "DB_USER")
        password = self.store.get("mariadb", "DB_PASSWORD") or ""
        if not user:
            self.logger.error("MariaDB credentials not found")
            return None
        runtime = self.app_settings.container_runtime_command
        return self._dump(
            "mariadb",
            "mariadb_backup",
            ".sql.gz",
            [
                runtime, "exec", "-e", "MYSQL_PWD", "mariadb",
                "mysqldump", "-u", user, "--all-databases",
                "--single-transaction", "--quick", "--lock-tables=false",
            ],
            {"MYSQL_PWD": password},
        )

    def backup_mongodb(self) -> Optional[Path]:
        """Dump every MongoDB database as a ``mongodump --archive`` stream."""
        self.logger.info("Backing up MongoDB databases...")
        if not self._container_running("mongodb"):
            self.logger.warning("MongoDB container not running")
            return None
        user = self.store.get("mongodb", "MONGO_INITDB_ROOT_USERNAME")
        password = self.store.get("mongodb", "MONGO_INITDB_ROOT_PASSWORD") or ""
        if not user:
            self.logger.error("MongoDB credentials not found")
            return None
        runtime = self.app_settings.container_runtime_command
        # mongodump reads no password variable; the container shell expands it.
        script = (
            'exec mongodump --archive --authenticationDatabase admin '
            '--username "$1" --password "$MONGO_PASSWORD"'
        )
        return self._dump(
            "mongodb",
            "mongo_backup",
            ".archive.gz",
            [runtime, "exec", "-e", "MONGO_PASSWORD", "mongodb", "sh", "-c", script, "mongodump", user],
            {"MONGO_PASSWORD": password},
        )

    def backup_all(self) -> Dict[str, Optional[Path]]:
        return {
            "postgres": self.backup_postgres(),
            "mariadb": self.backup_mariadb(),
            "mongodb": self.backup_mongodb(),
        }

    def list_backups(self) -> Dict[str, List[Path]]:
        """Backups per engine, newest first. Engines without backups are omitted."""
        found: Dict[str, List[Path]] = {}
        for engine in ENGINES:
            directory = self.engine_dir(engine)
            if not directory.is_dir():
                continue
            files = [
                p for p in directory.iterdir()
                if p.is_file() and p.name.endswith(DUMP_SUFFIXES)
            ]
            if files:
                found[engine] = sorted(files, key=lambda p: p.name, reverse=True)
        return found

    def cleanup_old_backups(self, retention_days: Optional[int] = None) -> List[Path]:
        """Delete dumps older than `retention_days` (default from settings)."""
        if retention_days is None:
            retention_days = self.app_settings.backup_retention_days
        cutoff = time.time() - retention_days * 86400
        removed = []
        for engine, files in self.list_backups().items():
            deleted = [p for p in files if p.stat().st_mtime < cutoff]
            for path in deleted:
                path.unlink()
            if deleted:
                self.logger.info(f"Deleted {len(deleted)} old {engine} backup(s)")
            removed.extend(deleted)
        if not removed:
            self.logger.info("No old backups to delete")
        return removed
