"""Command-line interface for rotauth.

This module provides the CLI commands for running and managing
the rotation authority.
"""

from typing import NoReturn

import click

from rotauth.core.config import get_settings
from rotauth.core.logging import configure_logging, get_logger


@click.group()
@click.version_option(version="0.1.0", prog_name="rotauth")
def cli() -> None:
    """rotauth - Refresh token rotation authority.

    Settings are read from ROTAUTH_* environment variables and .env files.
    """


@cli.command()
@click.option(
    "--host",
    type=str,
    default=None,
    help="Host to bind to (overrides config)",
)
@click.option(
    "--port",
    type=int,
    default=None,
    help="Port to bind to (overrides config)",
)
@click.option(
    "--workers",
    type=int,
    default=None,
    help="Number of worker processes (overrides config)",
)
@click.option(
    "--reload",
    is_flag=True,
    default=False,
    help="Enable auto-reload for development",
)
def serve(host: str | None, port: int | None, workers: int | None, reload: bool) -> None:
    """Start the rotauth server."""
    import uvicorn

    settings = get_settings()

    bind_host = host or settings.host
    bind_port = port or settings.port
    bind_workers = workers or settings.workers

    if bind_workers > 1 and settings.database_url.startswith("sqlite"):
        click.echo(
            "Error: SQLite does not support multiple worker processes. "
            "Use --workers 1 or switch to PostgreSQL.",
            err=True,
        )
        raise SystemExit(1)

    configure_logging(settings)

    logger = get_logger(__name__)
    logger.info(
        "Starting rotauth server",
        host=bind_host,
        port=bind_port,
        workers=bind_workers,
        reload=reload,
        environment=settings.environment,
    )

    uvicorn.run(
        "rotauth.infrastructure.api.app:app",
        host=bind_host,
        port=bind_port,
        workers=1 if reload else bind_workers,
        reload=reload,
        log_level=settings.log_level.lower(),
        access_log=True,
    )


@cli.command()
@click.option(
    "--force",
    is_flag=True,
    help="Skip confirmation prompt",
)
def init_db(force: bool) -> None:
    """Create the token family, refresh token and audit tables."""
    import asyncio

    from rotauth.infrastructure.persistence.database import get_db_manager

    settings = get_settings()
    configure_logging(settings)

    if not force:
        click.confirm(
            f"This will create all database tables in {settings.database_url}. Continue?",
            abort=True,
            default=False,
        )

    async def initialize() -> None:
        db = get_db_manager()
        try:
            await db.create_tables()
            click.echo("Database initialized successfully.")
        finally:
            await db.disconnect()

    asyncio.run(initialize())


@cli.command()
@click.option(
    "--days",
    type=click.IntRange(min=0),
    default=None,
    help="Retention period in days (defaults to ROTAUTH_FAMILY_RETENTION_DAYS)",
)
def purge(days: int | None) -> None:
    """Delete families revoked or idle for longer than the retention period."""
    import asyncio

    from rotauth.infrastructure.container import build_services
    from rotauth.infrastructure.persistence.database import get_db_manager

    settings = get_settings()
    configure_logging(settings)
    retention_days = settings.family_retention_days if days is None else days

    async def run() -> int:
        db = get_db_manager()
        services = build_services(db.session_factory, settings)
        await services.audit.start()
        try:
            return await services.authority.purge_inactive(retention_days)
        finally:
            await services.audit.stop()
            await db.disconnect()

    deleted = asyncio.run(run())
    click.echo(f"Purged {deleted} token families older than {retention_days} days.")


@cli.command()
@click.argument("family_id")
def revoke_family(family_id: str) -> None:
    """Revoke a token family and every active token in it."""
    import asyncio

    from rotauth.domain.entities import RevokeReason
    from rotauth.infrastructure.container import build_services
    from rotauth.infrastructure.persistence.database import get_db_manager

    settings = get_settings()
    configure_logging(settings)

    async def run() -> bool:
        db = get_db_manager()
        services = build_services(db.session_factory, settings)
        await services.audit.start()
        try:
            return await services.authority.revoke_family(
                family_id, RevokeReason.ADMIN_REVOKED, requested_by="cli"
            )
        finally:
            await services.audit.stop()
            await db.disconnect()

    if asyncio.run(run()):
        click.echo(f"Token family {family_id} revoked.")
    else:
        click.echo(f"Token family {family_id} not found or already revoked.", err=True)
        raise SystemExit(1)


@cli.command()
def info() -> None:
    """Display rotauth configuration."""
    settings = get_settings()

    click.echo(f"""
rotauth v{settings.app_version}
{'=' * 40}

Configuration:
  Environment:  {settings.environment}
  Debug:        {settings.debug}
  API Prefix:   {settings.api_prefix}

Server:
  Host:         {settings.host}
  Port:         {settings.port}
  Workers:      {settings.workers}

Database:
  URL:          {settings.database_url}
  Pool Size:    {settings.db_pool_size}
  Echo:         {settings.db_echo}

Tokens:
  Access Exp:   {settings.access_token_expire_minutes} minutes
  Refresh Exp:  {settings.refresh_token_expire_days} days
  Audience:     {settings.default_audience}

Rotation:
  Scope Policy: {settings.scope_policy}
  Reuse Grace:  {settings.reuse_grace_seconds} seconds
  Retries:      {settings.conflict_max_retries}

Audit:
  Sinks:        {", ".join(settings.audit_sinks)}
  Queue Size:   {settings.audit_queue_size}

Logging:
  Level:        {settings.log_level}
  Format:       {settings.log_format}
""")


def main() -> NoReturn:
    """Main entry point for the CLI.

    This function is called when the `rotauth` command is run
    or when using `python -m rotauth`.
    """
    cli()


if __name__ == "__main__":
    main()
