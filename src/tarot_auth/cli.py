"""
Operator command line for the auth service.

Commands that act on the account store directly, outside the HTTP API.
"""

import asyncio
import logging

import click

from .infrastructure.config import AuthConfig, ConfigurationError
from .infrastructure.container import build_container
from .infrastructure.monitoring.logging import setup_logging

logger = logging.getLogger(__name__)


@click.group()
def cli():
    """Tarot auth operator commands."""


@cli.command("create-admin")
@click.argument("username")
@click.option("--email", required=True, help="Email address of the admin account")
@click.password_option(help="Password of the admin account")
@click.option("--full-name", default=None, help="Display name")
def create_admin(username: str, email: str, password: str, full_name: str | None):
    """Create an admin account listed in ADMIN_USERNAMES.

    Examples:
        # Prompt for the password
        tarot-auth create-admin admin --email admin@example.com
    """
    try:
        config = AuthConfig.from_env()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e
    setup_logging(config.log_level, config.log_format)

    container = build_container(config)
    try:
        result = asyncio.run(
            container.accounts.provision_admin(username, email, password, full_name)
        )
    finally:
        container.dispose()

    if not result.is_ok:
        raise click.ClickException(result.detail)
    click.echo(f"Created admin account {result.value.username} (id {result.value.id})")


if __name__ == "__main__":
    cli()
