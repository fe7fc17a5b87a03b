"""
Migration execution commands.

This module provides commands for importing table exports into the
document store and migrating user accounts.
"""

import asyncio

import click

from hub_migration.cli.context import MigrationContext
from hub_migration.cli.decorators import handle_errors, pass_context
from hub_migration.cli.utils import (
    echo_error,
    echo_info,
    echo_success,
    format_duration,
    print_run_summary,
)
from hub_migration.migration.orchestrator import RunSummary
from hub_migration.reporting.report import generate_run_report
from hub_migration.utils.logging import get_logger

logger = get_logger(__name__)

MODES = ("tables", "users", "all")


async def _execute(ctx: MigrationContext, mode: str) -> RunSummary:
    orchestrator = ctx.orchestrator()
    try:
        if mode == "tables":
            summary = await orchestrator.run_tables()
        elif mode == "users":
            summary = await orchestrator.run_identity()
        else:
            return await orchestrator.run()
        return summary.finish()
    finally:
        await ctx.aclose()


def _run_migration(ctx: MigrationContext, mode: str, save_report: bool) -> None:
    """Run a migration mode, print its summary and exit non-zero on fatal errors."""
    if mode not in MODES:
        raise click.BadParameter(f"Unknown migration mode: {mode}")

    echo_info(f"Import directory: {ctx.config.paths.import_dir}")
    logger.info("migration_command_started", mode=mode)

    summary = asyncio.run(_execute(ctx, mode))

    click.echo()
    print_run_summary(summary)

    if save_report and ctx.config.save_report:
        files = generate_run_report(
            summary, output_dir=ctx.config.paths.report_dir, command=f"migrate {mode}"
        )
        echo_info(f"Report saved: {files['markdown']}")

    if not summary.success:
        echo_error(
            f"Migration finished with {len(summary.fatal_errors)} fatal error(s) "
            f"in {format_duration(summary.duration_seconds)}"
        )
        raise click.exceptions.Exit(1)

    echo_success(
        f"Migration complete: {summary.total_written:,} documents written "
        f"in {format_duration(summary.duration_seconds)}"
    )


@click.group(name="migrate")
def migrate() -> None:
    """Migration commands.

    Import table exports and user accounts into Firebase.
    """
    pass


_report_option = click.option(
    "--report/--no-report",
    "save_report",
    default=True,
    help="Save JSON and Markdown reports to the report directory",
)


@migrate.command(name="tables")
@_report_option
@pass_context
@handle_errors
def tables(ctx: MigrationContext, save_report: bool) -> None:
    """Import every enabled catalog table.

    Each table's export is decoded and merge-upserted into the collection of
    the same name, in catalog order. Missing or empty exports are skipped.

    Examples:

        hub-bridge migrate tables --config config.yaml
    """
    _run_migration(ctx, "tables", save_report)


@migrate.command(name="users")
@_report_option
@pass_context
@handle_errors
def users(ctx: MigrationContext, save_report: bool) -> None:
    """Migrate user accounts, roles and project links.

    Matches or creates an account for every profile e-mail, then re-keys
    user_roles and user_projects to the new account ids. user_projects is
    replaced wholesale.

    Examples:

        hub-bridge migrate users --config config.yaml
    """
    _run_migration(ctx, "users", save_report)


@migrate.command(name="all")
@_report_option
@pass_context
@handle_errors
def migrate_all(ctx: MigrationContext, save_report: bool) -> None:
    """Import the catalog tables, then migrate users.

    Examples:

        hub-bridge migrate all --config config.yaml
    """
    _run_migration(ctx, "all", save_report)
