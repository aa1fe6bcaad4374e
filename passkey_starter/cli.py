"""
Passkey Starter Command Line Interface.

This module provides CLI commands for running the server, managing the
database and checking a local setup.
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from passkey_starter import __version__
from passkey_starter.config import Settings
from passkey_starter.database import Database
from passkey_starter.tasks.scheduler import HousekeepingScheduler


def load_settings(database_url: Optional[str] = None) -> Settings:
    """Load settings from the environment, exiting with a message when invalid."""
    try:
        settings = Settings()
    except ValidationError as e:
        click.echo(f"❌ Invalid configuration: {e}")
        sys.exit(1)
    if database_url:
        settings = settings.model_copy(update={"database_url": database_url})
    return settings


@click.group()
@click.version_option(version=__version__, prog_name="passkey-starter")
def main():
    """Passkey Starter - passwordless sign-in for FastAPI applications."""
    pass


@main.group()
def db():
    """Database management commands."""
    pass


@db.command()
@click.option("--database-url", help="Database URL")
def init(database_url: Optional[str]):
    """Initialize database tables."""
    settings = load_settings(database_url)

    async def init_db():
        database = Database(settings)
        try:
            await database.create_all()
        finally:
            await database.dispose()

    try:
        asyncio.run(init_db())
        click.echo("✅ Database initialized successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database initialization failed: {e}")
        sys.exit(1)


@main.command()
@click.option("--database-url", help="Database URL")
def cleanup(database_url: Optional[str]):
    """Evict expired challenges and sessions now."""
    settings = load_settings(database_url)

    async def run_cleanup():
        database = Database(settings)
        try:
            return await HousekeepingScheduler(database, settings).run_all_now()
        finally:
            await database.dispose()

    try:
        results = asyncio.run(run_cleanup())
    except SQLAlchemyError as e:
        click.echo(f"❌ Cleanup failed: {e}")
        sys.exit(1)

    for name, removed in results.items():
        click.echo(f"🧹 {name}: removed {removed}")
    click.echo("✅ Cleanup completed!")


@main.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8000, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload")
def serve(host: str, port: int, reload: bool):
    """Start the development server."""
    import uvicorn

    load_settings()
    click.echo(f"🚀 Starting Passkey Starter on {host}:{port}")
    if reload:
        click.echo("🔄 Auto-reload enabled")

    uvicorn.run(
        "passkey_starter.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


@main.command()
def config():
    """Show current configuration."""
    settings = load_settings()

    click.echo("📋 Passkey Starter Configuration:")
    click.echo(f"Environment: {settings.environment}")
    click.echo(f"Database URL: {settings.database_url}")
    click.echo(f"Debug Mode: {settings.debug}")
    click.echo(f"Rate Limiting Enabled: {settings.enable_rate_limiting}")
    click.echo(f"WebAuthn RP ID: {settings.rp_id}")
    click.echo(f"WebAuthn RP Name: {settings.rp_name}")
    click.echo(f"WebAuthn Origin: {settings.rp_origin}")
    click.echo(f"User Verification Required: {settings.require_user_verification}")
    click.echo(f"Session Cookie: {settings.session_cookie_name} (secure={settings.cookie_secure})")


@main.command("check-setup")
@click.option("--env-file", default=".env", help="Environment file to look for")
def check_setup(env_file: str):
    """Check whether the project is ready to run."""
    has_env = Path(env_file).exists()
    settings = load_settings()

    async def probe() -> bool:
        database = Database(settings)
        try:
            return await database.has_schema()
        finally:
            await database.dispose()

    try:
        has_schema = asyncio.run(probe())
    except SQLAlchemyError:
        has_schema = False

    if has_env and has_schema:
        click.echo("✅ Your project is set up and ready to go!")
        click.echo("\n  Run 'passkey-starter serve --reload' to start developing")
        return

    click.echo("⚠️  Setup required! Follow these steps to get started:\n")

    if has_env:
        click.echo(f"✓ Step 1: Environment file ({env_file} exists)")
    else:
        click.echo("○ Step 1: Create environment file")
        click.echo(f"  Create {env_file} with at least PASSKEY_RP_ID and PASSKEY_RP_ORIGIN")

    if has_schema:
        click.echo("✓ Step 2: Database schema initialized")
    else:
        click.echo("○ Step 2: Setup database")
        click.echo("  passkey-starter db init")

    click.echo("○ Step 3: Start development")
    click.echo("  passkey-starter serve --reload")
    sys.exit(1)


@main.command()
def version():
    """Show version information."""
    click.echo(f"Passkey Starter v{__version__}")
    click.echo("Passwordless WebAuthn passkey sign-in for FastAPI")


if __name__ == "__main__":
    main()
