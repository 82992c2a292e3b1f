import logging
import subprocess
from unittest.mock import MagicMock

import pytest

from vps_orchestrator.common.command_utils import (
    check_package_installed,
    command_exists,
    log_message,
    run_command,
    run_elevated_command,
)
from vps_orchestrator.settings.config_models import AppSettings

COMMAND_UTILS = "vps_orchestrator.common.command_utils"


@pytest.fixture
def mock_app_settings():
    """Fixture to create mock AppSettings for testing."""
    mock_settings = MagicMock(spec=AppSettings)
    mock_settings.symbols = {"error": "❌", "info": "ℹ️", "warning": "!", "gear": "⚙️"}
    return mock_settings


@pytest.mark.parametrize(
    "level, method",
    [
        ("info", "info"),
        ("success", "info"),
        ("step", "info"),
        ("warning", "warning"),
        ("error", "error"),
        ("critical", "critical"),
        ("debug", "debug"),
        ("bogus", "info"),
    ],
)
def test_log_message_levels(mock_logger, level, method):
    """Test each level name maps onto a logger method."""
    log_message("hello", level, mock_logger)

    getattr(mock_logger, method).assert_called_once_with("hello", exc_info=False)


def test_run_command_success(mocker, mock_logger, mock_app_settings):
    """Test a successful command logs its output at debug level."""
    mocker.patch(
        f"{COMMAND_UTILS}.subprocess.run",
        return_value=subprocess.CompletedProcess(
            args=["echo", "hi"], returncode=0, stdout="hi\n", stderr=""
        ),
    )

    result = run_command(
        ["echo", "hi"], mock_app_settings, capture_output=True, current_logger=mock_logger
    )

    assert result.stdout == "hi\n"
    assert "Executing: echo hi" in mock_logger.info.call_args_list[0][0][0]
    mock_logger.debug.assert_called_once_with("   stdout: hi", exc_info=False)


def test_run_command_hides_output_and_command(mocker, mock_logger, mock_app_settings):
    """Test secrets in arguments and output stay out of the log."""
    mocker.patch(
        f"{COMMAND_UTILS}.subprocess.run",
        return_value=subprocess.CompletedProcess(
            args=[], returncode=0, stdout="secret dump", stderr=""
        ),
    )

    run_command(
        ["tool", "--password=hunter2"],
        mock_app_settings,
        capture_output=True,
        current_logger=mock_logger,
        log_output=False,
        display_command="tool --password=****",
    )

    logged = " ".join(str(c) for c in mock_logger.method_calls)
    assert "hunter2" not in logged
    assert "secret dump" not in logged
    assert "tool --password=****" in logged


def test_run_command_failure(mocker, mock_logger, mock_app_settings):
    """Test CalledProcessError is logged and re-raised."""
    mocker.patch(
        f"{COMMAND_UTILS}.subprocess.run",
        side_effect=subprocess.CalledProcessError(2, ["false"], stderr="boom"),
    )

    with pytest.raises(subprocess.CalledProcessError):
        run_command(["false"], mock_app_settings, current_logger=mock_logger)

    messages = [c[0][0] for c in mock_logger.error.call_args_list]
    assert "failed (rc 2)" in messages[0]
    assert messages[1] == "   stderr: boom"


def test_run_command_missing_executable(mocker, mock_logger, mock_app_settings):
    error = FileNotFoundError()
    error.filename = "nosuchtool"
    mocker.patch(f"{COMMAND_UTILS}.subprocess.run", side_effect=error)

    with pytest.raises(FileNotFoundError):
        run_command(["nosuchtool"], mock_app_settings, current_logger=mock_logger)

    assert "Command not found: nosuchtool" in mock_logger.error.call_args[0][0]


def test_run_command_quiet_logs_at_debug(mocker, mock_logger, mock_app_settings):
    mocker.patch(
        f"{COMMAND_UTILS}.subprocess.run",
        side_effect=subprocess.CalledProcessError(1, ["systemctl"]),
    )

    with pytest.raises(subprocess.CalledProcessError):
        run_command(["systemctl"], mock_app_settings, current_logger=mock_logger, quiet=True)

    mock_logger.info.assert_not_called()
    mock_logger.error.assert_not_called()


def test_run_command_shell_joins_list(mocker, mock_app_settings):
    run = mocker.patch(
        f"{COMMAND_UTILS}.subprocess.run",
        return_value=subprocess.CompletedProcess(args="", returncode=0),
    )

    run_command(["echo", "a", "|", "cat"], mock_app_settings, shell=True)

    assert run.call_args[0][0] == "echo a | cat"
    assert run.call_args[1]["shell"] is True


@pytest.mark.parametrize("euid, expected", [(0, ["id"]), (1000, ["sudo", "id"])])
def test_run_elevated_command_prefix(mocker, mock_app_settings, euid, expected):
    """Test sudo is only added for non-root users."""
    mocker.patch(f"{COMMAND_UTILS}.os.geteuid", return_value=euid)
    run = mocker.patch(f"{COMMAND_UTILS}.run_command")

    run_elevated_command(["id"], mock_app_settings, check=False, display_command="id")

    assert run.call_args[0][0] == expected
    assert run.call_args[1]["check"] is False
    assert run.call_args[1]["display_command"] == "id"


def test_command_exists(mocker):
    mocker.patch(f"{COMMAND_UTILS}.shutil.which", side_effect=lambda c: "/usr/bin/ls" if c == "ls" else None)

    assert command_exists("ls") is True
    assert command_exists("nope") is False


@pytest.mark.parametrize(
    "returncode, stdout, expected",
    [
        (0, "install ok installed", True),
        (0, "deinstall ok config-files", False),
        (1, "", False),
    ],
)
def test_check_package_installed(mocker, mock_logger, mock_app_settings, returncode, stdout, expected):
    run = mocker.patch(
        f"{COMMAND_UTILS}.run_command",
        return_value=MagicMock(returncode=returncode, stdout=stdout),
    )

    assert check_package_installed("wireguard-tools", mock_app_settings, mock_logger) is expected
    assert run.call_args[0][0] == ["dpkg-query", "-W", "-f=${Status}", "wireguard-tools"]


def test_check_package_installed_without_dpkg(mocker, mock_logger, mock_app_settings):
    mocker.patch(f"{COMMAND_UTILS}.run_command", side_effect=FileNotFoundError)

    assert check_package_installed("nginx", mock_app_settings, mock_logger) is False
    mock_logger.warning.assert_called_once()
