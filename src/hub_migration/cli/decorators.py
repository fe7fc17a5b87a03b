"""
Decorators for CLI commands.

This module provides decorators for error handling and context passing.
"""

import functools
from collections.abc import Callable

import click

from hub_migration.cli.context import MigrationContext
from hub_migration.client.exceptions import (
    APIError,
    AuthenticationError,
    ConfigurationError,
    CredentialMissingError,
    MigrationError,
    NetworkError,
)
from hub_migration.utils.logging import get_logger

logger = get_logger(__name__)


def pass_context(f: Callable) -> Callable:
    """
    Decorator to pass MigrationContext to command function.

    Usage:
        @click.command()
        @pass_context
        def my_command(ctx: MigrationContext):
            print(ctx.config)
    """

    @click.pass_context
    @functools.wraps(f)
    def wrapper(click_ctx: click.Context, *args, **kwargs):
        migration_ctx: MigrationContext = click_ctx.obj
        return f(migration_ctx, *args, **kwargs)

    return wrapper


def handle_errors(f: Callable) -> Callable:
    """
    Decorator to handle common errors in CLI commands.

    This decorator catches common exceptions and converts them to
    user-friendly error messages with appropriate exit codes.

    Exit codes:
        0: Success
        1: Run finished with fatal errors, or unexpected error
        2: Configuration or credential error
        3: Authentication error
        4: API or network error
    """

    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)

        except click.exceptions.Exit:
            # Let Exit exceptions pass through (they're intentional exits)
            raise

        except CredentialMissingError as e:
            logger.error("credential_missing", error=str(e))
            click.echo(f"Credential Error: {e}", err=True)
            click.echo(
                "\nDownload a service-account key from the Firebase console and save it "
                "as the configured credentials_file, or set FIREBASE_SERVICE_ACCOUNT.",
                err=True,
            )
            raise click.exceptions.Exit(2) from e

        except ConfigurationError as e:
            logger.error("configuration_error", error=str(e))
            click.echo(f"Configuration Error: {e}", err=True)
            click.echo(
                "\nPlease check your configuration file and environment variables.",
                err=True,
            )
            raise click.exceptions.Exit(2) from e

        except AuthenticationError as e:
            logger.error("authentication_error", error=str(e))
            click.echo(f"Authentication Error: {e}", err=True)
            click.echo(
                "\nPlease verify the service account and its roles in the project.",
                err=True,
            )
            raise click.exceptions.Exit(3) from e

        except APIError as e:
            logger.error("api_error", error=str(e))
            click.echo(f"API Error: {e}", err=True)
            if e.status_code:
                click.echo(f"\nResponse status: {e.status_code}", err=True)
            raise click.exceptions.Exit(4) from e

        except NetworkError as e:
            logger.error("network_error", error=str(e))
            click.echo(f"Network Error: {e}", err=True)
            raise click.exceptions.Exit(4) from e

        except MigrationError as e:
            logger.error("migration_error", error=str(e))
            click.echo(f"Migration Error: {e}", err=True)
            raise click.exceptions.Exit(1) from e

        except Exception as e:
            logger.error("unexpected_error", error=str(e), exc_info=True)
            click.echo(f"Unexpected Error: {e}", err=True)
            click.echo(
                "\nAn unexpected error occurred. Please check the logs for details.",
                err=True,
            )
            raise click.exceptions.Exit(1) from e

    return wrapper
