# -*- coding: utf-8 -*-
import logging

import pytest
from click.testing import CliRunner

from vps_orchestrator.cli import cli
from vps_orchestrator.credentials.store import FileCredentialStore
from vps_orchestrator.modular.orchestrator import InstallResult

SCRIPT_INSTALLER = "vps_orchestrator.modular.script_installer.ScriptInstaller"


@pytest.fixture(autouse=True)
def _reset_package_logger():
    yield
    logger = logging.getLogger("vps_orchestrator")
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def workspace(tmp_path):
    catalog = tmp_path / "apps.yaml"
    catalog.write_text(
        """
units:
  nginx:
    category: infrastructure
    probe: {type: binary, binaries: nginx}
  certbot:
    category: infrastructure
    dependencies: nginx
    probe: {type: binary, binaries: certbot}
  grafana:
    category: monitoring
""",
        encoding="utf-8",
    )
    config = tmp_path / "config.yaml"
    config.write_text(
        f"secrets_dir: {tmp_path / 'secrets'}\n"
        f"backup_root: {tmp_path / 'backups'}\n"
        f"apps_dir: {tmp_path / 'apps'}\n"
        "probe_settle_seconds: 0\n",
        encoding="utf-8",
    )
    return tmp_path


@pytest.fixture
def invoke(workspace):
    runner = CliRunner()

    def _invoke(*args, **kwargs):
        return runner.invoke(
            cli,
            ["--config", str(workspace / "config.yaml"), "--catalog", str(workspace / "apps.yaml")]
            + list(args),
            **kwargs,
        )

    return _invoke


@pytest.fixture
def store(workspace):
    return FileCredentialStore(workspace / "secrets")


def test_cli_help():
    """Test the CLI help text."""
    result = CliRunner().invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "Usage" in result.output
    assert "Install and maintain applications on a single VPS." in result.output


def test_list_marks_installed_units(mocker, invoke):
    mocker.patch(f"{SCRIPT_INSTALLER}.is_installed", autospec=True, side_effect=lambda self: self.name == "nginx")

    result = invoke("list")

    assert result.exit_code == 0
    assert "[infrastructure]" in result.output
    assert "[monitoring]" in result.output
    nginx_line = next(line for line in result.output.splitlines() if line.startswith("   nginx"))
    assert "✓ Installed" in nginx_line
    grafana_line = next(line for line in result.output.splitlines() if line.startswith("   grafana"))
    assert "Installed" not in grafana_line


def test_plan(invoke):
    result = invoke("plan", "certbot")

    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert lines.index(" 1. nginx") < lines.index(" 2. certbot")


def test_plan_unknown_unit(invoke):
    result = invoke("plan", "ghost")

    assert result.exit_code == 1
    assert "ghost" in result.output


def test_missing_catalog_reports_error(workspace):
    result = CliRunner().invoke(
        cli,
        ["--config", str(workspace / "config.yaml"), "--catalog", str(workspace / "none.yaml"), "list"],
    )

    assert result.exit_code == 1
    assert "not found" in result.output


def test_status_exit_code(mocker, invoke):
    mocker.patch(f"{SCRIPT_INSTALLER}.is_installed", autospec=True, side_effect=lambda self: self.name == "nginx")

    assert invoke("status", "nginx").exit_code == 0
    result = invoke("status", "nginx", "certbot")
    assert result.exit_code == 1
    assert "not installed" in result.output


def test_install_exit_code(mocker, invoke):
    """Test the command exits with the orchestrator's result code."""
    install = mocker.patch(
        "vps_orchestrator.cli.InstallerOrchestrator.install",
        return_value=InstallResult(unit="certbot", success=False, failed_unit="nginx"),
    )

    result = invoke("--yes", "install", "certbot")

    install.assert_called_once_with("certbot")
    assert result.exit_code == 1


def test_install_runs_scripts_in_order(mocker, invoke):
    """Test an automated install runs the dependency before the target."""
    state = {"installed": set(), "order": []}

    def fake_install(self):
        state["order"].append(self.name)
        state["installed"].add(self.name)
        return True

    mocker.patch(f"{SCRIPT_INSTALLER}.install", autospec=True, side_effect=fake_install)
    mocker.patch(
        f"{SCRIPT_INSTALLER}.is_installed",
        autospec=True,
        side_effect=lambda self: self.name in state["installed"],
    )

    result = invoke("--yes", "install", "certbot")

    assert result.exit_code == 0
    assert state["order"] == ["nginx", "certbot"]


def test_menu_exit(mocker, invoke):
    mocker.patch(f"{SCRIPT_INSTALLER}.is_installed", return_value=False)

    result = invoke("menu", input="0\n")

    assert result.exit_code == 0
    assert "Goodbye!" in result.output


def test_menu_invalid_selection(mocker, invoke):
    mocker.patch(f"{SCRIPT_INSTALLER}.is_installed", return_value=False)

    result = invoke("menu", input="42\n")

    assert result.exit_code == 1
    assert "Invalid selection!" in result.output


def test_secrets_list_and_show(invoke, store):
    assert "No credentials stored" in invoke("secrets", "list").output
    store.save("n8n", "DB_PASSWORD", "supersecretpassword")

    listed = invoke("secrets", "list")
    shown = invoke("secrets", "show", "n8n")

    assert "n8n" in listed.output
    assert shown.exit_code == 0
    assert "DB_PASSWORD=supe***********word" in shown.output
    assert "supersecretpassword" not in shown.output


def test_secrets_show_unknown(invoke):
    result = invoke("secrets", "show", "ghost")

    assert result.exit_code == 1
    assert "No credentials found for: ghost" in result.output


def test_secrets_delete_requires_confirmation(invoke, store):
    store.save("n8n", "DB_PASSWORD", "secret")

    cancelled = invoke("secrets", "delete", "n8n", input="n\n")
    assert "Delete cancelled" in cancelled.output
    assert store.has_credentials("n8n")

    deleted = invoke("--yes", "secrets", "delete", "n8n")
    assert deleted.exit_code == 0
    assert "Credentials moved to" in deleted.output
    assert not store.has_credentials("n8n")


def test_secrets_backup_and_restore(invoke, store):
    store.save("n8n", "DB_PASSWORD", "secret")

    assert invoke("secrets", "backup").exit_code == 0
    archive = str(sorted(store.backup_dir.glob("credentials_*.tar.gz"))[-1])
    store.save("n8n", "DB_PASSWORD", "changed")
    restore = invoke("--yes", "secrets", "restore", archive)

    assert restore.exit_code == 0
    assert "Restored .env_n8n" in restore.output
    assert store.get("n8n", "DB_PASSWORD") == "secret"


def test_secrets_export_import(invoke, store, workspace):
    store.save("n8n", "DB_PASSWORD", "secret")
    exported = workspace / "n8n.env"

    assert invoke("secrets", "export", "n8n", str(exported)).exit_code == 0
    result = invoke("secrets", "import", "grafana", str(exported))

    assert result.exit_code == 0
    assert store.load("grafana") == {"DB_PASSWORD": "secret"}


def test_secrets_regenerate(invoke, store):
    store.save("n8n", "DB_PASSWORD", "secret")

    result = invoke("--yes", "secrets", "regenerate", "n8n")

    assert result.exit_code == 0
    assert store.get("n8n", "DB_PASSWORD") != "secret"


def test_generate_password(invoke):
    result = invoke("secrets", "generate-password", "--length", "12", "--charset", "numeric")

    assert result.exit_code == 0
    password = result.output.strip().splitlines()[-1]
    assert len(password) == 12
    assert password.isdigit()


def test_health_writes_html(mocker, invoke, workspace):
    report = mocker.MagicMock()
    mocker.patch("vps_orchestrator.cli.collect_health", return_value=report)
    mocker.patch("vps_orchestrator.cli.render_text", return_value="text report\n")
    mocker.patch("vps_orchestrator.cli.render_html", return_value="<html></html>")
    html_path = workspace / "report.html"

    result = invoke("health", "--html", str(html_path))

    assert result.exit_code == 0
    assert "text report" in result.output
    assert html_path.read_text(encoding="utf-8") == "<html></html>"


def test_backup_db_single_engine_failure(mocker, invoke):
    mocker.patch("vps_orchestrator.cli.DatabaseBackupManager.backup_postgres", return_value=None)

    result = invoke("backup-db", "postgres")

    assert result.exit_code == 1
    assert "postgres: skipped" in result.output


def test_backup_db_mongodb(mocker, invoke, workspace):
    dump = workspace / "mongo_backup_20260101_000000.archive.gz"
    backup = mocker.patch(
        "vps_orchestrator.cli.DatabaseBackupManager.backup_mongodb", return_value=dump
    )

    result = invoke("backup-db", "mongodb")

    assert result.exit_code == 0
    backup.assert_called_once()
    assert f"mongodb: {dump}" in result.output
