"""Database engine lifecycle and session management."""

import logging
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from passkey_starter.config import Settings

logger = logging.getLogger(__name__)

# Create declarative base for models
Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp used for every stored datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _enable_sqlite_foreign_keys(dbapi_conn, connection_record) -> None:
    """SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Owns the async engine and session factory for one application instance.

    Constructed once at process start (see the application lifespan) and
    handed to every component that needs storage; nothing reaches for a
    module-level engine.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine: Optional[AsyncEngine] = None
        self.session_maker: Optional[async_sessionmaker] = None

    def connect(self) -> None:
        """Create the engine and session factory."""
        if self.engine is not None:
            return

        url = self.settings.database_url
        self.engine = create_async_engine(
            url,
            echo=self.settings.debug,
            future=True,
            pool_pre_ping=True,
        )
        if url.startswith("sqlite"):
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        self.session_maker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info(f"Database engine created for {self.engine.url.render_as_string(hide_password=True)}")

    async def create_all(self) -> None:
        """Create database tables for every registered model."""
        self.connect()
        async with self.engine.begin() as conn:
            # Import all models to ensure they are registered
            from passkey_starter.models import (  # noqa: F401
                account,
                security_log,
                session,
                webauthn_challenge,
                webauthn_credential,
            )

            await conn.run_sync(Base.metadata.create_all)

    async def has_schema(self) -> bool:
        """Check whether the account table exists."""
        self.connect()
        async with self.engine.connect() as conn:
            return await conn.run_sync(
                lambda sync_conn: sync_conn.dialect.has_table(sync_conn, "accounts")
            )

    def session(self) -> AsyncSession:
        """Open a new AsyncSession; use as an async context manager."""
        if self.session_maker is None:
            self.connect()
        return self.session_maker()

    async def dispose(self) -> None:
        """Close database connections."""
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None
            self.session_maker = None


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function to get a database session.

    Yields:
        AsyncSession: Session bound to the application's Database
    """
    database: Database = request.app.state.db
    async with database.session() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
