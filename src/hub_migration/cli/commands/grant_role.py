"""
Role assignment command.

Grants a role to an existing account by merging ``user_roles/{uid}``.
"""

import asyncio

import click

from hub_migration.cli.context import MigrationContext
from hub_migration.cli.decorators import handle_errors, pass_context
from hub_migration.cli.utils import echo_success
from hub_migration.client.identity_client import IdentityAccount
from hub_migration.migration.identity import grant_role as grant_role_to_account


async def _execute(ctx: MigrationContext, email: str, role: str) -> IdentityAccount:
    try:
        return await grant_role_to_account(ctx.identity_client, ctx.writer(), email, role=role)
    finally:
        await ctx.aclose()


@click.command(name="grant-role")
@click.argument("email")
@click.option("--role", default="super_admin", show_default=True, help="Role to grant")
@pass_context
@handle_errors
def grant_role(ctx: MigrationContext, email: str, role: str) -> None:
    """Grant a role to the account with EMAIL.

    Examples:

        hub-bridge grant-role admin@example.com

        hub-bridge grant-role lead@example.com --role manager
    """
    account = asyncio.run(_execute(ctx, email, role))
    echo_success(f"Granted {role} to {account.email} (uid {account.uid})")
