# vps_orchestrator/credentials/store.py
# -*- coding: utf-8 -*-
"""
Per-application credential storage.

The file-backed store keeps one private ``.env_<app>`` file per application
under the secrets directory, which install scripts read through
``VPS_SECRETS_DIR``.
"""

import json
import logging
import os
import re
import shutil
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

from vps_orchestrator.credentials.audit import AuditLog
from vps_orchestrator.credentials.generators import generate_secure_password

module_logger = logging.getLogger(__name__)

ENV_FILE_PREFIX = ".env_"
INDEX_FILE_NAME = ".secrets_index.json"
BACKUP_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

_KEY_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_APP_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class CredentialsNotFoundError(KeyError):
    """Raised when an application has no stored credentials."""

    def __init__(self, app_name: str):
        self.app_name = app_name
        super().__init__(app_name)

    def __str__(self) -> str:
        return f"No credentials found for: {self.app_name}"


@dataclass
class StoredCredentials:
    app_name: str
    variables: int
    modified: datetime
    path: Path


def mask_value(value: str) -> str:
    """Keep the first and last four characters of values longer than eight."""
    if len(value) <= 8:
        return "****"
    return f"{value[:4]}{'*' * (len(value) - 8)}{value[-4:]}"


def _validate_app_name(app_name: str) -> str:
    if not app_name or not _APP_PATTERN.match(app_name):
        raise ValueError(f"Invalid application name: {app_name!r}")
    return app_name


def _validate_key(key: str) -> str:
    if not _KEY_PATTERN.match(key or ""):
        raise ValueError(f"Invalid credential key: {key!r}")
    return key


def parse_env_lines(text: str) -> Dict[str, str]:
    """Parse ``KEY=value`` lines; blank lines and ``#`` comments are skipped."""
    values: Dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if key.startswith("export "):
            key = key[len("export "):].strip()
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        values[key] = value
    return values


def format_env_line(key: str, value: str) -> str:
    """
    Render one ``KEY=value`` line that :func:`parse_env_lines` reads back
    unchanged.

    Values with surrounding whitespace, or already wrapped in matching quotes,
    are wrapped in one more pair of double quotes.
    """
    if value != value.strip() or (
        len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"')
    ):
        value = f'"{value}"'
    return f"{key}={value}\n"


class CredentialStore(ABC):
    """Key/value credentials grouped by application."""

    @abstractmethod
    def save(self, app_name: str, key: str, value: str) -> None:
        pass

    @abstractmethod
    def load(self, app_name: str) -> Dict[str, str]:
        """Return every stored value for the app; empty when there are none."""
        pass

    def get(self, app_name: str, key: str) -> Optional[str]:
        return self.load(app_name).get(key)

    def has_credentials(self, app_name: str) -> bool:
        return bool(self.load(app_name))

    def masked(self, app_name: str) -> Dict[str, str]:
        return {k: mask_value(v) for k, v in self.load(app_name).items()}


class FileCredentialStore(CredentialStore):
    """
    Credential store backed by ``<secrets_dir>/.env_<app>`` files.

    The directory is created with mode 0700 and every file is written with
    mode 0600. Writes go through a temporary file in the same directory and
    are renamed into place.
    """

    def __init__(
        self,
        secrets_dir: Path,
        audit_log: Optional[AuditLog] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.secrets_dir = Path(secrets_dir)
        self.audit_log = audit_log
        self.logger = logger or module_logger

    # Layout

    @property
    def index_path(self) -> Path:
        return self.secrets_dir / INDEX_FILE_NAME

    @property
    def backup_dir(self) -> Path:
        return self.secrets_dir / ".backup"

    def env_file(self, app_name: str) -> Path:
        return self.secrets_dir / f"{ENV_FILE_PREFIX}{_validate_app_name(app_name)}"

    def credential_files(self) -> List[Path]:
        """Every live ``.env_<app>`` file, sorted by name."""
        if not self.secrets_dir.is_dir():
            return []
        return sorted(
            p
            for p in self.secrets_dir.glob(f"{ENV_FILE_PREFIX}*")
            if p.is_file() and ".deleted_" not in p.name
        )

    def ensure_dir(self) -> None:
        if not self.secrets_dir.is_dir():
            self.secrets_dir.mkdir(parents=True, exist_ok=True)
        os.chmod(self.secrets_dir, 0o700)

    def _audit(self, action: str, app_name: str, details: str = "", result: str = "SUCCESS") -> None:
        if self.audit_log is not None:
            self.audit_log.record(action, app_name, details, result)

    def _write_private(self, path: Path, content: str) -> None:
        self.ensure_dir()
        fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=".tmp_")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def _write_values(self, app_name: str, values: Dict[str, str]) -> Path:
        path = self.env_file(app_name)
        content = "".join(format_env_line(k, v) for k, v in values.items())
        self._write_private(path, content)
        return path

    # Index

    def _read_index(self) -> Dict[str, Dict[str, Dict[str, str]]]:
        if not self.index_path.is_file():
            return {}
        try:
            with open(self.index_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            self.logger.warning(f"Ignoring unreadable secrets index {self.index_path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _update_index(self, app_name: str, keys: List[str]) -> None:
        index = self._read_index()
        now = datetime.now().isoformat(timespec="seconds")
        entry = index.setdefault(app_name, {})
        for key in keys:
            entry[key] = {"updated": now}
        self._write_private(self.index_path, json.dumps(index, indent=2, sort_keys=True))

    def _drop_from_index(self, app_name: str) -> None:
        index = self._read_index()
        if app_name in index:
            del index[app_name]
            self._write_private(self.index_path, json.dumps(index, indent=2, sort_keys=True))

    # CredentialStore

    def save(self, app_name: str, key: str, value: str) -> None:
        """
        Store one value, replacing an existing key in place.

        Raises:
            ValueError: If the app name or key is malformed, or the value
                spans more than one line.
        """
        _validate_key(key)
        if value and value.splitlines() != [value]:
            raise ValueError(f"Credential value for {key} must be a single line")
        values = self.load(app_name)
        values[key] = value
        self._write_values(app_name, values)
        self._update_index(app_name, [key])
        self.logger.debug(f"Saved credential {key} for {app_name}")

    def load(self, app_name: str) -> Dict[str, str]:
        path = self.env_file(app_name)
        if not path.is_file():
            return {}
        return parse_env_lines(path.read_text(encoding="utf-8"))

    # Maintenance operations

    def list_apps(self) -> List[StoredCredentials]:
        entries = []
        for path in self.credential_files():
            app_name = path.name[len(ENV_FILE_PREFIX):]
            values = parse_env_lines(path.read_text(encoding="utf-8"))
            entries.append(
                StoredCredentials(
                    app_name=app_name,
                    variables=len(values),
                    modified=datetime.fromtimestamp(path.stat().st_mtime),
                    path=path,
                )
            )
        return entries

    def _backup_file(self, app_name: str) -> Optional[Path]:
        path = self.env_file(app_name)
        if not path.is_file():
            return None
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        os.chmod(self.backup_dir, 0o700)
        stamp = datetime.now().strftime(BACKUP_TIMESTAMP_FORMAT)
        target = self.backup_dir / f"{path.name}.{stamp}"
        counter = 1
        while target.exists():
            target = self.backup_dir / f"{path.name}.{stamp}_{counter}"
            counter += 1
        shutil.copy2(path, target)
        os.chmod(target, 0o600)
        return target

    def delete(self, app_name: str) -> Path:
        """
        Retire an app's credentials by renaming the file out of the way.

        Returns:
            The path the file was moved to.

        Raises:
            CredentialsNotFoundError: If the app has no credential file.
        """
        path = self.env_file(app_name)
        if not path.is_file():
            raise CredentialsNotFoundError(app_name)
        stamp = datetime.now().strftime(BACKUP_TIMESTAMP_FORMAT)
        target = path.with_name(f"{path.name}.deleted_{stamp}")
        path.rename(target)
        self._drop_from_index(app_name)
        self._audit("DELETE_CREDENTIALS", app_name, f"moved to {target.name}")
        self.logger.info(f"Credentials deleted (moved to {target})")
        return target

    def export_to(self, app_name: str, destination: Path) -> Path:
        """
        Copy an app's credential file to `destination` with mode 0600.

        Raises:
            CredentialsNotFoundError: If the app has no credential file.
        """
        path = self.env_file(app_name)
        if not path.is_file():
            raise CredentialsNotFoundError(app_name)
        destination = Path(destination)
        shutil.copyfile(path, destination)
        os.chmod(destination, 0o600)
        self._audit("EXPORT_CREDENTIALS", app_name, f"to {destination}")
        return destination

    def import_from(self, app_name: str, source: Path) -> Optional[Path]:
        """
        Replace an app's credentials with the ``KEY=value`` lines of `source`.

        Returns:
            The backup taken of the previous file, if there was one.

        Raises:
            FileNotFoundError: If `source` does not exist.
        """
        source = Path(source)
        if not source.is_file():
            raise FileNotFoundError(f"Import file not found: {source}")
        values = parse_env_lines(source.read_text(encoding="utf-8"))
        for key in values:
            _validate_key(key)
        backup = self._backup_file(app_name)
        self._write_values(app_name, values)
        self._update_index(app_name, list(values))
        self._audit("IMPORT_CREDENTIALS", app_name, f"from {source}")
        return backup

    def regenerate(
        self,
        app_name: str,
        generator: Callable[[], str] = generate_secure_password,
    ) -> Optional[Path]:
        """
        Replace every stored value for an app with a freshly generated one.

        The caller is responsible for restarting the application so it picks
        up the new values.

        Returns:
            The backup taken of the previous file.

        Raises:
            CredentialsNotFoundError: If the app has no credential file.
        """
        values = self.load(app_name)
        if not values:
            raise CredentialsNotFoundError(app_name)
        backup = self._backup_file(app_name)
        fresh = {key: generator() for key in values}
        self._write_values(app_name, fresh)
        self._update_index(app_name, list(fresh))
        self._audit("REGENERATE_CREDENTIALS", app_name, f"{len(fresh)} values")
        return backup
