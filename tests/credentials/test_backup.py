# tests/credentials/test_backup.py
import io
import os
import stat
import tarfile
import time

import pytest

from vps_orchestrator.credentials.backup import CredentialBackupManager


@pytest.fixture
def manager(store, audit_log):
    return CredentialBackupManager(store, keep=2, audit_log=audit_log)


def test_backup_all_creates_private_archive(store, manager, audit_log):
    store.save("n8n", "DB_PASSWORD", "secret")
    store.save("grafana", "ADMIN_PASSWORD", "admin")

    archive = manager.backup_all()

    assert archive is not None
    assert stat.S_IMODE(archive.stat().st_mode) == 0o600
    with tarfile.open(archive, "r:gz") as tar:
        assert sorted(tar.getnames()) == [".env_grafana", ".env_n8n"]
    assert "BACKUP_CREDENTIALS all by" in audit_log.read_lines()[-1]
    assert "2 files" in audit_log.read_lines()[-1]


def test_backup_all_with_nothing_to_back_up(manager, mock_logger):
    manager.logger = mock_logger

    assert manager.backup_all() is None
    mock_logger.warning.assert_called_once_with("No credentials to back up")


def test_backup_all_keeps_newest_archives(store, manager):
    """Test only `keep` archives survive."""
    store.save("n8n", "DB_PASSWORD", "secret")

    archives = [manager.backup_all() for _ in range(3)]

    remaining = manager.list_backups()
    assert len(remaining) == 2
    assert archives[0] not in remaining


def test_cleanup_old_backups(store, manager):
    store.save("n8n", "DB_PASSWORD", "secret")
    archive = manager.backup_all()
    old = time.time() - 30 * 86400
    os.utime(archive, (old, old))

    assert manager.cleanup_old_backups(7) == [archive]
    assert manager.list_backups() == []


def test_restore_round_trip(store, manager, audit_log):
    store.save("n8n", "DB_PASSWORD", "secret")
    archive = manager.backup_all()
    store.save("n8n", "DB_PASSWORD", "changed")

    restored = manager.restore(archive)

    assert restored == [".env_n8n"]
    assert store.get("n8n", "DB_PASSWORD") == "secret"
    assert stat.S_IMODE(store.env_file("n8n").stat().st_mode) == 0o600
    assert "RESTORE_CREDENTIALS all" in audit_log.read_lines()[-1]


def test_restore_ignores_unexpected_members(store, manager, tmp_path):
    """Test path traversal and foreign files are never extracted."""
    archive = tmp_path / "crafted.tar.gz"
    with tarfile.open(archive, "w:gz") as tar:
        for name, data in (
            ("../escape", b"x"),
            ("nested/.env_app", b"A=1\n"),
            ("notes.txt", b"hi"),
            (".env_good", b"A=1\n"),
        ):
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))

    assert manager.restore(archive) == [".env_good"]
    assert not (tmp_path / "escape").exists()
    assert store.load("good") == {"A": "1"}


def test_restore_missing_archive(manager, tmp_path):
    with pytest.raises(FileNotFoundError):
        manager.restore(tmp_path / "missing.tar.gz")
