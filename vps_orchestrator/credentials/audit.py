# vps_orchestrator/credentials/audit.py
# -*- coding: utf-8 -*-
"""
Append-only audit log.

One line per event::

    [2026-01-31 14:02:11] INSTALL n8n by alice - dependencies: postgres - SUCCESS
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from vps_orchestrator.common.system_utils import get_invoking_user

module_logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class AuditLog:
    """Writes audit events to a private, append-only text file."""

    def __init__(self, path: Path, logger: Optional[logging.Logger] = None):
        self.path = Path(path)
        self.logger = logger or module_logger

    def _ensure_file(self) -> None:
        parent = self.path.parent
        if not parent.is_dir():
            parent.mkdir(parents=True, exist_ok=True)
            os.chmod(parent, 0o700)
        if not self.path.exists():
            self.path.touch()
            os.chmod(self.path, 0o600)

    @staticmethod
    def format_entry(
        action: str,
        app_name: str,
        user: str,
        details: str,
        result: str,
        timestamp: datetime,
    ) -> str:
        stamp = timestamp.strftime(TIMESTAMP_FORMAT)
        if details:
            return f"[{stamp}] {action} {app_name} by {user} - {details} - {result}"
        return f"[{stamp}] {action} {app_name} by {user} - {result}"

    def record(
        self,
        action: str,
        app_name: str = "system",
        details: str = "",
        result: str = "SUCCESS",
    ) -> str:
        """
        Append one event and return the written line.

        Failure to write is logged as a warning.
        """
        line = self.format_entry(
            action,
            app_name or "system",
            get_invoking_user(),
            details,
            result,
            datetime.now(),
        )
        try:
            self._ensure_file()
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as e:
            self.logger.warning(f"Could not write audit log {self.path}: {e}")
        return line

    def read_lines(self, limit: Optional[int] = None) -> List[str]:
        """Return logged lines, oldest first; the last `limit` if given."""
        if not self.path.is_file():
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            lines = [line.rstrip("\n") for line in f if line.strip()]
        if limit is not None:
            return lines[-limit:] if limit > 0 else []
        return lines
