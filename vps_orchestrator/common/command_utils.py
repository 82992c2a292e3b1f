# vps_orchestrator/common/command_utils.py
# -*- coding: utf-8 -*-
"""
Utilities for executing shell commands and logging their output.
"""

import logging
import os
import shutil
import subprocess
from typing import Dict, List, Optional, Union

from vps_orchestrator.settings.config_models import SYMBOLS_DEFAULT, AppSettings

module_logger = logging.getLogger(__name__)


def get_symbols(app_settings: Optional[AppSettings]) -> Dict[str, str]:
    """Return the log symbols configured in `app_settings`, or the defaults."""
    if app_settings and app_settings.symbols:
        return app_settings.symbols
    return SYMBOLS_DEFAULT


def log_message(
    message: str,
    level: str = "info",
    current_logger: Optional[logging.Logger] = None,
    app_settings: Optional[AppSettings] = None,
    exc_info: bool = False,
) -> None:
    """
    Logs a message at the named level.

    "success" and "step" are accepted as aliases for info so call sites can
    say what they mean; the console formatter colours them the same way.

    Args:
        message: The log message to be recorded.
        level: "debug", "info", "success", "step", "warning", "error" or
            "critical". Unknown levels are logged at info.
        current_logger: A logger instance to use. If not provided, the module
            logger is used.
        app_settings: Optional application settings.
        exc_info: Whether to include exception details in the log.
    """
    effective_logger = current_logger if current_logger else module_logger

    if level == "warning":
        effective_logger.warning(message, exc_info=exc_info)
    elif level == "error":
        effective_logger.error(message, exc_info=exc_info)
    elif level == "critical":
        effective_logger.critical(message, exc_info=exc_info)
    elif level == "debug":
        effective_logger.debug(message, exc_info=exc_info)
    else:
        effective_logger.info(message, exc_info=exc_info)


def _get_elevated_command_prefix() -> List[str]:
    """
    Returns ``["sudo"]`` unless the process already runs as root.
    """
    return [] if os.geteuid() == 0 else ["sudo"]


def run_command(
    command: Union[List[str], str],
    app_settings: Optional[AppSettings],
    check: bool = True,
    shell: bool = False,
    capture_output: bool = False,
    text: bool = True,
    cmd_input: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    quiet: bool = False,
    log_output: bool = True,
    display_command: Optional[str] = None,
) -> subprocess.CompletedProcess:
    """
    Executes a system command and logs the process details and results.

    Args:
        command: The command to execute, as a list or a string. With
            ``shell=True`` a list is joined into a single string.
        app_settings: Optional settings, used for log symbols.
        check: Raise CalledProcessError on a non-zero exit code.
        shell: Run the command through the shell.
        capture_output: Capture stdout and stderr.
        text: Decode the output streams as text.
        cmd_input: Data passed to the command's standard input.
        current_logger: Logger to use. Defaults to the module logger.
        cwd: Working directory for the command.
        env: Environment for the command. Defaults to the inherited one.
        quiet: Log execution and captured output at debug level. Used by
            probes, which run many short read-only commands.
        log_output: Log captured stdout/stderr at debug level. Disable for
            commands whose output is data, such as database dumps.
        display_command: Text logged in place of the command, for commands
            that carry secrets in their arguments.

    Returns:
        The completed process.

    Raises:
        subprocess.CalledProcessError: If the command fails and ``check`` is set.
        FileNotFoundError: If the executable is not found.
    """
    effective_logger = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    detail_level = "debug" if quiet else "info"
    command_to_log_str: str
    command_to_run: Union[List[str], str]

    if shell:
        if isinstance(command, list):
            command_to_run = " ".join(command)
        else:
            command_to_run = command
        command_to_log_str = str(command_to_run)
    else:
        if isinstance(command, str):
            log_message(
                f"{symbols.get('warning', '!')} Running string command '{command}' without shell=True. Consider list format.",
                "warning",
                effective_logger,
                app_settings,
            )
            command_to_run = command.split()
            command_to_log_str = command
        else:
            command_to_run = command
            command_to_log_str = subprocess.list2cmdline(command)

    if display_command is not None:
        command_to_log_str = display_command

    log_message(
        f"{symbols.get('gear', '⚙️')} Executing: {command_to_log_str} {f'(in {cwd})' if cwd else ''}",
        detail_level,
        effective_logger,
        app_settings,
    )
    try:
        result = subprocess.run(
            command_to_run,
            check=check,
            shell=shell,
            capture_output=capture_output,
            text=text,
            input=cmd_input,
            cwd=cwd,
            env=env,
        )
        if capture_output and text and log_output:
            if result.stdout and result.stdout.strip():
                log_message(
                    f"   stdout: {result.stdout.strip()}",
                    "debug",
                    effective_logger,
                    app_settings,
                )
            if result.stderr and result.stderr.strip():
                log_message(
                    f"   stderr: {result.stderr.strip()}",
                    "debug",
                    effective_logger,
                    app_settings,
                )
        return result
    except subprocess.CalledProcessError as e:
        log_message(
            f"{symbols.get('error', '❌')} Command `{command_to_log_str}` failed (rc {e.returncode}).",
            "debug" if quiet else "error",
            effective_logger,
            app_settings,
        )
        if isinstance(e.stderr, str) and e.stderr.strip():
            log_message(
                f"   stderr: {e.stderr.strip()}",
                "debug" if quiet else "error",
                effective_logger,
                app_settings,
            )
        raise
    except FileNotFoundError as e:
        log_message(
            f"{symbols.get('error', '❌')} Command not found: {e.filename}. Ensure it's installed and in PATH.",
            "debug" if quiet else "error",
            effective_logger,
            app_settings,
        )
        raise


def run_elevated_command(
    command: List[str],
    app_settings: Optional[AppSettings],
    check: bool = True,
    capture_output: bool = False,
    cmd_input: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    quiet: bool = False,
    text: bool = True,
    log_output: bool = True,
    display_command: Optional[str] = None,
) -> subprocess.CompletedProcess:
    """
    Executes a command with elevated permissions.

    Prefixes the command with ``sudo`` when the process is not root and
    delegates to :func:`run_command`.
    """
    prefix = _get_elevated_command_prefix()
    elevated_command_list = prefix + list(command)
    return run_command(
        elevated_command_list,
        app_settings,
        check=check,
        shell=False,
        capture_output=capture_output,
        text=text,
        cmd_input=cmd_input,
        current_logger=current_logger,
        cwd=cwd,
        env=env,
        quiet=quiet,
        log_output=log_output,
        display_command=display_command,
    )


def command_exists(command_name: str) -> bool:
    """
    Check if a command exists in the system's PATH.
    """
    return shutil.which(command_name) is not None


def check_package_installed(
    package_name: str,
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Checks if a Debian package is installed using ``dpkg-query``.

    Returns:
        True if dpkg reports "install ok installed" for the package. A missing
        ``dpkg-query`` is reported and treated as not installed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    try:
        result = run_command(
            ["dpkg-query", "-W", "-f=${Status}", package_name],
            app_settings,
            check=False,
            capture_output=True,
            text=True,
            current_logger=logger_to_use,
            quiet=True,
        )
    except FileNotFoundError:
        log_message(
            f"{symbols.get('warning', '!')} dpkg-query command not found. Cannot check package '{package_name}'.",
            "warning",
            logger_to_use,
            app_settings,
        )
        return False
    return result.returncode == 0 and "install ok installed" in result.stdout
