"""docgate CLI tool."""

import asyncio
import logging
import sys
from datetime import timedelta

import click
from pydantic import ValidationError as SettingsValidationError

from docgate import __version__
from docgate.auth.service import TokenAuthorizationManager
from docgate.core.client import StorageClientManager
from docgate.core.exceptions import ConfigurationError
from docgate.core.settings import DocGateSettings


def _load_settings() -> DocGateSettings:
    try:
        settings = DocGateSettings()
        settings.require_complete()
    except ConfigurationError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)
    except SettingsValidationError as e:
        click.echo(f"❌ Invalid configuration:\n{e}", err=True)
        sys.exit(1)
    return settings


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@click.group()
def cli():
    """docgate CLI - Run and operate the upload gateway."""
    pass


@cli.command()
@click.option("--host", default=None, help="Interface to bind (default: HOST or 0.0.0.0)")
@click.option("--port", type=int, default=None, help="Port to listen on (default: PORT or 8080)")
@click.option("--reload", is_flag=True, help="Reload on code changes (development only)")
def serve(host, port, reload):
    """Run the gateway with uvicorn."""
    import uvicorn

    settings = _load_settings()
    _configure_logging(settings.log_level)

    host = host or settings.host
    port = port or settings.port
    click.echo(f"🚀 docgate listening on http://{host}:{port}")

    uvicorn.run(
        "docgate.fastapi.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@cli.command()
def check():
    """Validate configuration and reach the storage backend."""
    settings = _load_settings()
    _configure_logging(settings.log_level)

    try:
        StorageClientManager(settings).verify_backend()
    except ConfigurationError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    click.echo(f"✅ Configuration OK, bucket '{settings.aws_bucket_name}' reachable")


@cli.command("issue-token")
@click.option("--ttl", type=int, default=None, help="Lifetime in seconds (default: CAPABILITY_TTL_SECONDS)")
def issue_token(ttl):
    """Mint an upload capability token with the configured secret."""
    settings = _load_settings()
    manager = TokenAuthorizationManager(
        secret_key=settings.secret_key,
        algorithm=settings.algorithm,
        ttl=timedelta(seconds=ttl or settings.capability_ttl_seconds),
    )
    issued = asyncio.run(manager.begin_session())
    click.echo(issued.credential)
    click.echo(
        f"expires at {issued.capability.expires_at.isoformat()}",
        err=True,
    )


@cli.command()
def version():
    """Show the docgate version."""
    click.echo(f"docgate {__version__}")


if __name__ == "__main__":
    cli()
