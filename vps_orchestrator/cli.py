# -*- coding: utf-8 -*-
"""
Command-line interface for the VPS orchestrator.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

import click

from vps_orchestrator.common.logging_config import get_logger, setup_logging
from vps_orchestrator.credentials.audit import AuditLog
from vps_orchestrator.credentials.backup import CredentialBackupManager
from vps_orchestrator.credentials.generators import CHARSETS, generate_secure_password
from vps_orchestrator.credentials.store import (
    CredentialsNotFoundError,
    FileCredentialStore,
)
from vps_orchestrator.modular.catalog import Catalog, load_catalog
from vps_orchestrator.modular.exceptions import OrchestratorError
from vps_orchestrator.modular.orchestrator import InstallerOrchestrator
from vps_orchestrator.modular.prompts import Prompter
from vps_orchestrator.modular.registry import InstallerRegistry
from vps_orchestrator.settings.config_loader import load_app_settings
from vps_orchestrator.settings.config_models import AppSettings
from vps_orchestrator.tools.db_backup import DatabaseBackupManager
from vps_orchestrator.tools.health_check import collect_health, render_html, render_text


class AppContext:
    """
    Objects shared by the commands, built on first use.

    Commands that never touch the catalog (``secrets``, ``health``) work
    without one.
    """

    def __init__(self, app_settings: AppSettings, logger: logging.Logger):
        self.app_settings = app_settings
        self.logger = logger
        self._catalog: Optional[Catalog] = None
        self._registry: Optional[InstallerRegistry] = None
        self.audit_log = AuditLog(app_settings.effective_audit_log_path, logger)
        self.store = FileCredentialStore(app_settings.secrets_dir, self.audit_log, logger)
        self.prompter = Prompter(assume_yes=app_settings.assume_yes, logger=logger)

    @property
    def catalog(self) -> Catalog:
        if self._catalog is None:
            self._catalog = load_catalog(self.app_settings.catalog_path, self.logger)
        return self._catalog

    @property
    def registry(self) -> InstallerRegistry:
        if self._registry is None:
            self._registry = InstallerRegistry.from_catalog(
                self.catalog, self.app_settings, self.logger
            )
        return self._registry

    def orchestrator(self) -> InstallerOrchestrator:
        return InstallerOrchestrator(
            self.registry,
            self.prompter,
            self.app_settings,
            audit_log=self.audit_log,
            credential_store=self.store,
            logger=self.logger,
        )

    def backups(self) -> CredentialBackupManager:
        return CredentialBackupManager(
            self.store,
            keep=self.app_settings.credential_backup_keep,
            audit_log=self.audit_log,
            logger=self.logger,
        )


pass_app = click.make_pass_decorator(AppContext)


@click.group()
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="YAML configuration file (default: ./config.yaml).",
)
@click.option(
    "--catalog",
    "catalog_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Unit catalog file (.yaml or .conf).",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.option(
    "-y",
    "--yes",
    "assume_yes",
    is_flag=True,
    help="Answer yes to every confirmation (automation mode).",
)
@click.pass_context
def cli(ctx, config_file, catalog_path, verbose, assume_yes):
    """
    Install and maintain applications on a single VPS.

    Units are declared in the catalog; installing one first installs the
    units it depends on.
    """
    bootstrap_logger = setup_logging("DEBUG" if verbose else None)
    app_settings = load_app_settings(
        cli_overrides={
            "catalog_path": catalog_path,
            "assume_yes": True if assume_yes else None,
            "log_level": "DEBUG" if verbose else None,
        },
        config_file_path=config_file,
        current_logger=bootstrap_logger,
    )
    setup_logging(app_settings.log_level, app_settings.log_file)
    ctx.obj = AppContext(app_settings, get_logger(__name__))


def _fail(message: str) -> None:
    raise click.ClickException(message)


def _installed_map(app: AppContext, names: List[str]) -> Dict[str, bool]:
    return {name: app.registry.get_installer(name).is_installed() for name in names}


@cli.command(name="list")
@pass_app
def list_command(app):
    """List units by category with their installed state."""
    try:
        groups = app.catalog.by_category()
    except OrchestratorError as e:
        _fail(str(e))
    for category, units in groups.items():
        click.echo(f"[{category}]")
        installed = _installed_map(app, [u.name for u in units])
        for unit in units:
            marker = click.style("✓ Installed", fg="green") if installed[unit.name] else ""
            click.echo(f"   {unit.name:<25} {marker}".rstrip())
        click.echo("")


@cli.command()
@pass_app
@click.pass_context
def menu(ctx, app):
    """Pick a unit from a numbered list and install it."""
    try:
        groups = app.catalog.by_category()
    except OrchestratorError as e:
        _fail(str(e))

    click.echo("=" * 46)
    click.echo("  Install Applications")
    click.echo("=" * 46)
    click.echo("")
    choices: List[str] = []
    for category, units in groups.items():
        click.echo(f"[{category}]")
        for unit in units:
            choices.append(unit.name)
            installed = app.registry.get_installer(unit.name).is_installed()
            suffix = " [✓ Installed]" if installed else ""
            click.echo(f"   {len(choices):2d}) {unit.name:<25}{suffix}".rstrip())
        click.echo("")
    click.echo(" 0) Exit")
    click.echo("")

    choice = click.prompt("Select application number", type=int)
    if choice == 0:
        click.echo("Goodbye!")
        return
    if not 1 <= choice <= len(choices):
        _fail("Invalid selection!")

    result = app.orchestrator().install(choices[choice - 1])
    ctx.exit(result.exit_code)


@cli.command()
@click.argument("unit")
@pass_app
@click.pass_context
def install(ctx, app, unit):
    """Install UNIT and the units it requires."""
    try:
        orchestrator = app.orchestrator()
    except OrchestratorError as e:
        _fail(str(e))
    result = orchestrator.install(unit)
    if result.optional_failed:
        click.echo(
            f"Optional enhancements with issues: {', '.join(result.optional_failed)}",
            err=True,
        )
    ctx.exit(result.exit_code)


@cli.command()
@click.argument("units", nargs=-1)
@pass_app
@click.pass_context
def status(ctx, app, units):
    """Probe UNITS (all units by default). Exits 0 only if all are installed."""
    try:
        states = app.orchestrator().check_status(list(units) or None)
    except OrchestratorError as e:
        _fail(str(e))
    for name, installed in states.items():
        state = click.style("installed", fg="green") if installed else click.style("not installed", fg="red")
        click.echo(f"{name:<25} {state}")
    ctx.exit(0 if all(states.values()) else 1)


@cli.command()
@click.argument("unit")
@pass_app
def plan(app, unit):
    """Show the order in which UNIT and its dependencies would install."""
    try:
        order = app.orchestrator().plan(unit)
    except OrchestratorError as e:
        _fail(str(e))
    for position, name in enumerate(order, start=1):
        click.echo(f"{position:2d}. {name}")


@cli.group()
def secrets():
    """Manage stored application credentials."""
    pass


@secrets.command(name="list")
@pass_app
def secrets_list(app):
    """List applications with stored credentials."""
    entries = app.store.list_apps()
    if not entries:
        click.echo("No credentials stored")
        return
    click.echo(f"{'APPLICATION':<20} {'VARIABLES':<10} {'MODIFIED':<20}")
    for entry in entries:
        click.echo(
            f"{entry.app_name:<20} {entry.variables:<10} {entry.modified:%Y-%m-%d %H:%M}"
        )


@secrets.command(name="show")
@click.argument("app_name")
@pass_app
def secrets_show(app, app_name):
    """Show the masked credentials of APP_NAME."""
    values = app.store.masked(app_name)
    if not values:
        _fail(f"No credentials found for: {app_name}")
    for key, value in values.items():
        click.echo(f"{key}={value}")


@secrets.command(name="backup")
@pass_app
def secrets_backup(app):
    """Archive every credential file."""
    archive = app.backups().backup_all()
    if archive is not None:
        click.echo(str(archive))


@secrets.command(name="restore")
@click.argument("backup_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@pass_app
def secrets_restore(app, backup_file):
    """Restore credential files from BACKUP_FILE."""
    if not app.prompter.confirm(f"Restore credentials from {backup_file.name}? Existing files will be overwritten."):
        click.echo("Restore cancelled")
        return
    for name in app.backups().restore(backup_file):
        click.echo(f"Restored {name}")


@secrets.command(name="delete")
@click.argument("app_name")
@pass_app
def secrets_delete(app, app_name):
    """Retire the credentials of APP_NAME."""
    if not app.prompter.confirm(f"Delete credentials for {app_name}?"):
        click.echo("Delete cancelled")
        return
    try:
        moved_to = app.store.delete(app_name)
    except CredentialsNotFoundError as e:
        _fail(str(e))
    click.echo(f"Credentials moved to {moved_to}")


@secrets.command(name="export")
@click.argument("app_name")
@click.argument("destination", type=click.Path(dir_okay=False, path_type=Path))
@pass_app
def secrets_export(app, app_name, destination):
    """Copy the credentials of APP_NAME to DESTINATION."""
    try:
        app.store.export_to(app_name, destination)
    except CredentialsNotFoundError as e:
        _fail(str(e))
    click.echo(f"Exported to {destination}")


@secrets.command(name="import")
@click.argument("app_name")
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@pass_app
def secrets_import(app, app_name, source):
    """Replace the credentials of APP_NAME with the contents of SOURCE."""
    try:
        backup = app.store.import_from(app_name, source)
    except ValueError as e:
        _fail(str(e))
    if backup is not None:
        click.echo(f"Previous credentials backed up to {backup}")
    click.echo(f"Imported credentials for {app_name}")


@secrets.command(name="regenerate")
@click.argument("app_name")
@pass_app
def secrets_regenerate(app, app_name):
    """Replace every credential of APP_NAME with a new random value."""
    if not app.prompter.confirm(
        f"Regenerate all credentials for {app_name}? The application must be reconfigured afterwards."
    ):
        click.echo("Regenerate cancelled")
        return
    try:
        app.store.regenerate(app_name)
    except CredentialsNotFoundError as e:
        _fail(str(e))
    click.echo(f"Credentials regenerated for {app_name}. Restart the application to apply them.")


@secrets.command(name="generate-password")
@click.option("--length", default=32, show_default=True, type=click.IntRange(min=1))
@click.option(
    "--charset",
    default="alphanumeric_special",
    show_default=True,
    type=click.Choice(sorted(CHARSETS)),
)
def secrets_generate_password(length, charset):
    """Print a random password."""
    click.echo(generate_secure_password(length, charset))


@cli.command()
@click.option(
    "--html",
    "html_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write an HTML report to this file.",
)
@pass_app
def health(app, html_path):
    """Report host resources, containers, services, certificates and backups."""
    report = collect_health(app.app_settings, app.store, current_logger=app.logger)
    click.echo(render_text(report), nl=False)
    if html_path is not None:
        html_path.write_text(render_html(report), encoding="utf-8")
        click.echo(f"HTML report written to {html_path}")


@cli.command(name="backup-db")
@click.argument(
    "engine",
    type=click.Choice(["postgres", "mariadb", "mongodb", "all"]),
    default="all",
)
@click.option("--cleanup", is_flag=True, help="Remove dumps older than the retention period.")
@click.option("--list", "list_only", is_flag=True, help="List existing dumps and exit.")
@pass_app
@click.pass_context
def backup_db(ctx, app, engine, cleanup, list_only):
    """Dump the containerised databases."""
    manager = DatabaseBackupManager(app.app_settings, app.store, app.audit_log, app.logger)
    if list_only:
        for engine_name, files in manager.list_backups().items():
            click.echo(f"[{engine_name}]")
            for path in files:
                click.echo(f"  {path.name}")
        return

    if engine == "postgres":
        results = {"postgres": manager.backup_postgres()}
    elif engine == "mariadb":
        results = {"mariadb": manager.backup_mariadb()}
    elif engine == "mongodb":
        results = {"mongodb": manager.backup_mongodb()}
    else:
        results = manager.backup_all()

    for engine_name, path in results.items():
        click.echo(f"{engine_name}: {path if path else 'skipped'}")
    if cleanup:
        manager.cleanup_old_backups()
    if engine != "all" and not any(results.values()):
        ctx.exit(1)


def main():
    cli(prog_name="vps-orchestrator")


if __name__ == "__main__":
    main()
