"""
Main CLI entry point for Hub Bridge.

This module provides the command-line interface for migrating relational
table exports and user accounts into Firebase.
"""

import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from hub_migration import __version__
from hub_migration.cli.commands import backup as backup_commands
from hub_migration.cli.commands import config as config_commands
from hub_migration.cli.commands import grant_role as grant_role_commands
from hub_migration.cli.commands import migrate as migrate_commands
from hub_migration.cli.context import MigrationContext, load_config
from hub_migration.client.exceptions import ConfigurationError
from hub_migration.utils.logging import configure_logging, get_logger

# Load environment variables from .env file
load_dotenv()

logger = get_logger(__name__)


@click.group()
@click.version_option(version=__version__, prog_name="hub-bridge")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file (defaults plus HUB_BRIDGE_* variables when omitted)",
    envvar="HUB_BRIDGE_CONFIG",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Set console logging level (default: logging.level from configuration)",
    envvar="HUB_BRIDGE_LOG_LEVEL",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the log file here instead of logging.file",
    envvar="HUB_BRIDGE_LOG_FILE",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path | None,
    log_level: str | None,
    log_file: Path | None,
) -> None:
    """Hub Bridge - Migrate relational exports into Firebase.

    Reads semicolon-delimited table exports from the import directory and
    writes them to the document store; re-creates user accounts in the
    identity provider and re-keys roles and project links to the new ids.

    Examples:

        # Validate configuration and credential
        hub-bridge config validate --config config.yaml

        # Import tables, then users
        hub-bridge migrate all --config config.yaml

        # Snapshot collections
        hub-bridge backup
    """
    try:
        loaded = load_config(config)
    except ConfigurationError as e:
        click.echo(f"Configuration Error: {e}", err=True)
        raise click.exceptions.Exit(2) from e

    effective_level = (log_level or loaded.logging.level).upper()
    effective_log_file = str(log_file) if log_file else loaded.logging.file

    configure_logging(
        level=effective_level,
        log_format=loaded.logging.format,
        log_file=effective_log_file,
        file_level=loaded.logging.file_level,
    )

    ctx.obj = MigrationContext(
        config_path=config,
        log_level=effective_level,
        log_file=Path(effective_log_file) if effective_log_file else None,
        _config=loaded,
    )

    logger.debug(
        "cli_initialized",
        config=str(config) if config else None,
        log_level=effective_level,
    )


# Register command groups
cli.add_command(config_commands.config)
cli.add_command(migrate_commands.migrate)

# Register standalone commands
cli.add_command(backup_commands.backup)
cli.add_command(grant_role_commands.grant_role)


def main() -> int:
    """Main entry point for CLI."""
    try:
        result = cli(standalone_mode=False)
        return result if isinstance(result, int) else 0
    except click.ClickException as e:
        e.show()
        return e.exit_code
    except click.Abort:
        click.echo("Aborted!", err=True)
        return 1
    except Exception as e:
        logger.error("unexpected_error", error=str(e), exc_info=True)
        click.echo(f"Error: {e}", err=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
