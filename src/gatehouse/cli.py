"""Command-line interface for Gatehouse.

Runs the API server and performs one-off administration tasks against the
configured database.
"""

import asyncio

import click

from gatehouse import __version__
from gatehouse.core.config import get_settings
from gatehouse.core.logging import configure_logging, get_logger


@click.group()
@click.version_option(version=__version__, prog_name="Gatehouse")
def cli() -> None:
    """Gatehouse - employee account registration and authentication.

    Settings are read from GATEHOUSE_* environment variables and .env.
    """


@cli.command()
@click.option("--host", type=str, default=None, help="Host to bind to (overrides config)")
@click.option("--port", type=int, default=None, help="Port to bind to (overrides config)")
@click.option("--reload", is_flag=True, default=False, help="Enable auto-reload for development")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Start the API server."""
    import uvicorn

    settings = get_settings()
    bind_host = host or settings.host
    bind_port = port or settings.port

    configure_logging(settings)
    logger = get_logger(__name__)
    logger.info(
        "Starting Gatehouse server",
        host=bind_host,
        port=bind_port,
        reload=reload,
        environment=settings.environment,
    )

    # One process only: the revocation registry and transition locks live in memory.
    uvicorn.run(
        "gatehouse.infrastructure.api.app:app",
        host=bind_host,
        port=bind_port,
        workers=1,
        reload=reload,
        log_level=settings.log_level.lower(),
        access_log=True,
    )


@cli.command("init-db")
@click.option("--force", is_flag=True, help="Skip confirmation prompt")
def init_db(force: bool) -> None:
    """Create tables and seed the role catalogue."""
    from gatehouse.infrastructure.persistence.database import get_db_manager, init_database

    settings = get_settings()
    configure_logging(settings)

    if not force:
        click.confirm(
            f"This will create all tables in {settings.database_url}. Continue?",
            abort=True,
            default=False,
        )

    async def initialize() -> None:
        try:
            await init_database()
            click.echo("Database initialized successfully.")
        finally:
            await get_db_manager().disconnect()

    asyncio.run(initialize())


@cli.command("create-admin")
@click.option("--email", type=str, default=None, help="Administrator email (prompts if not provided)")
@click.option(
    "--password",
    type=str,
    default=None,
    help="Administrator password (prompts if not provided)",
)
def create_admin(email: str | None, password: str | None) -> None:
    """Create an active administrator account."""
    from gatehouse.domain.exceptions import PasswordPolicyError
    from gatehouse.domain.services import PasswordPolicy, ensure_administrator
    from gatehouse.infrastructure.persistence.database import get_db_manager, init_database

    settings = get_settings()
    configure_logging(settings)

    if email is None:
        email = click.prompt("Administrator email", type=str)
    if password is None:
        password = click.prompt(
            "Administrator password", hide_input=True, confirmation_prompt=True
        )

    try:
        PasswordPolicy().ensure_strong(password)
    except PasswordPolicyError as e:
        for detail in e.details:
            click.echo(f"ERROR: {detail['message']}", err=True)
        raise SystemExit(1) from e

    async def create() -> None:
        db = get_db_manager()
        try:
            await init_database(db)
            async with db.session() as session:
                account = await ensure_administrator(session, email, password)
            click.echo(f"Administrator ready: {account.email} ({account.employee_code})")
        finally:
            await db.disconnect()

    asyncio.run(create())


@cli.command()
def info() -> None:
    """Display the effective configuration."""
    settings = get_settings()

    click.echo(f"""
Gatehouse v{settings.app_version}
{'=' * 40}

Configuration:
  Environment:        {settings.environment}
  Debug:              {settings.debug}
  API Prefix:         {settings.api_prefix}
  Registration Flow:  {settings.registration_flow}

Server:
  Host:               {settings.host}
  Port:               {settings.port}

Database:
  URL:                {settings.database_url}

Tokens:
  Access Lifetime:    {settings.access_token_expire_minutes} minutes
  Activation Expiry:  {settings.activation_token_expire_days} days
  Clock Skew:         {settings.clock_skew_seconds} seconds

Mail:
  SMTP Host:          {settings.smtp_host or '(log only)'}

Logging:
  Level:              {settings.log_level}
  Format:             {settings.log_format}
""")


def main() -> None:
    """Entry point for the ``gatehouse`` command and ``python -m gatehouse``."""
    cli()


if __name__ == "__main__":
    main()
