"""
Backup command.

Snapshots the application's collections to a dated JSON file.
"""

import asyncio

import click

from hub_migration.cli.context import MigrationContext
from hub_migration.cli.decorators import handle_errors, pass_context
from hub_migration.cli.utils import echo_success, print_table
from hub_migration.migration.backup import BackupResult, backup_collections
from hub_migration.resources import BACKUP_COLLECTIONS


async def _execute(ctx: MigrationContext, collections: tuple[str, ...]) -> BackupResult:
    try:
        return await backup_collections(
            ctx.firestore_client,
            ctx.config.paths.backup_dir,
            collections=collections,
        )
    finally:
        await ctx.aclose()


@click.command(name="backup")
@click.option(
    "--collection",
    "-C",
    "collections",
    multiple=True,
    help="Collection to back up (repeatable; default: all application collections)",
)
@pass_context
@handle_errors
def backup(ctx: MigrationContext, collections: tuple[str, ...]) -> None:
    """Back up collections to backup_dir/backup_<date>.json.

    Examples:

        hub-bridge backup

        FIREBASE_SERVICE_ACCOUNT="$(cat key.json)" hub-bridge backup
    """
    result = asyncio.run(_execute(ctx, collections or BACKUP_COLLECTIONS))

    print_table(
        "Backup",
        ["Collection", "Documents"],
        [[name, f"{count:,}"] for name, count in result.counts.items()],
    )
    echo_success(f"Backup saved: {result.path} ({result.total_documents:,} documents)")
