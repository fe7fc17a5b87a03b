"""
Configuration management commands.

This module provides commands for validating and displaying the migration
configuration.
"""

from pathlib import Path

import click

from hub_migration.cli.context import MigrationContext
from hub_migration.cli.decorators import handle_errors, pass_context
from hub_migration.cli.utils import echo_info, echo_success, echo_warning, print_table
from hub_migration.config import MigrationConfig
from hub_migration.migration.locator import SourceLocator
from hub_migration.resources import IDENTITY_TABLES, TABLE_CATALOG
from hub_migration.utils.logging import get_logger

logger = get_logger(__name__)


@click.group(name="config")
def config() -> None:
    """Configuration management commands.

    Validate and display the migration configuration.
    """
    pass


@config.command(name="validate")
@pass_context
@handle_errors
def validate(ctx: MigrationContext) -> None:
    """Validate configuration, credential and import directory.

    This command checks:
    - The configuration file (if any) parses and its values are valid
    - The service-account credential is present and well-formed
    - The import directory exists, and which tables have an export

    Examples:

        hub-bridge config validate --config config.yaml
    """
    source = ctx.config_path or "defaults and environment"
    echo_info(f"Validating configuration: {source}")
    config = ctx.config

    click.echo()
    _display_config_summary(config)

    click.echo()
    account = ctx.service_account
    echo_success(f"Credential loaded from {account.source} ({account.client_email})")
    if config.firebase.uses_emulator:
        echo_warning("Emulator hosts are set: requests go to the local emulators")

    click.echo()
    _validate_import_dir(config)

    click.echo()
    echo_success("Configuration is valid!")


def _display_config_summary(config: MigrationConfig) -> None:
    """Display configuration summary."""
    rows = [
        ["Import Directory", config.paths.import_dir],
        ["Export Extension", config.paths.export_extension],
        ["Credentials File", config.paths.credentials_file],
        ["Report Directory", config.paths.report_dir],
        ["Backup Directory", config.paths.backup_dir],
        ["Project ID", config.firebase.project_id or "(from credential)"],
        ["Document Store URL", config.firebase.resolved_firestore_url()],
        ["Identity URL", config.firebase.resolved_identity_url()],
        ["Batch Size", config.performance.batch_size],
        ["Rate Limit (req/s)", config.performance.rate_limit],
        ["Skipped Tables", ", ".join(config.tables.skip_tables) or "-"],
    ]

    print_table(
        "Configuration Summary",
        ["Setting", "Value"],
        rows,
    )


def _validate_import_dir(config: MigrationConfig) -> None:
    """Report which catalog tables have an export file."""
    import_dir = Path(config.paths.import_dir)
    if not import_dir.is_dir():
        echo_warning(f"Import directory does not exist: {import_dir}")
        return

    locator = SourceLocator(import_dir, extension=config.paths.export_extension)
    found = 0
    for descriptor in TABLE_CATALOG:
        if not descriptor.enabled and descriptor.name not in IDENTITY_TABLES:
            continue
        if locator.locate(descriptor.name) is not None:
            found += 1
        else:
            echo_warning(f"No export found for {descriptor.name}")

    echo_success(f"Import directory {import_dir}: {found} table export(s) found")


@config.command(name="show")
@pass_context
@handle_errors
def show(ctx: MigrationContext) -> None:
    """Display current configuration and the table catalog.

    Examples:

        hub-bridge config show --config config.yaml
    """
    config = ctx.config

    _display_config_summary(config)

    skipped = set(config.tables.skip_tables)
    rows = []
    for order, descriptor in enumerate(TABLE_CATALOG, 1):
        if not descriptor.enabled:
            state = f"disabled ({descriptor.note})"
        elif descriptor.name in skipped:
            state = "skipped by configuration"
        else:
            state = "enabled"
        rows.append([order, descriptor.name, state])

    click.echo()
    print_table("Table Catalog", ["#", "Table", "State"], rows)

    click.echo("\nPerformance Configuration:")
    click.echo(f"  Batch Size: {config.performance.batch_size}")
    click.echo(f"  Rate Limit: {config.performance.rate_limit} req/s")
    click.echo(f"  Retry Attempts: {config.performance.retry_attempts}")

    click.echo("\nLogging Configuration:")
    click.echo(f"  Console Level: {config.logging.level}")
    click.echo(f"  File: {config.logging.file} ({config.logging.file_level}, {config.logging.format})")
