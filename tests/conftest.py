"""
Shared test fixtures for the passkey starter.

Each test gets its own SQLite file under ``tmp_path`` so the async
fixtures and the TestClient (which runs the app on its own event loop)
never share state between tests.
"""

from typing import AsyncGenerator, Callable, Dict, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession

from passkey_starter.config import Settings
from passkey_starter.database import Database
from passkey_starter.main import create_app
from passkey_starter.services.session_service import IssuedSession, SessionIssuer
from tests.authenticator import SoftAuthenticator

RP_ID = "localhost"
ORIGIN = "http://localhost:3000"


def make_settings(tmp_path, **overrides) -> Settings:
    values = dict(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        rp_id=RP_ID,
        rp_origin=ORIGIN,
        enable_rate_limiting=False,
        enable_background_tasks=False,
        log_level="DEBUG",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Test settings backed by a per-test SQLite file."""
    return make_settings(tmp_path)


@pytest.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    database = Database(settings)
    await database.create_all()
    yield database
    await database.dispose()


@pytest.fixture
async def db(database: Database) -> AsyncGenerator[AsyncSession, None]:
    async with database.session() as session:
        yield session


@pytest.fixture
def authenticator() -> SoftAuthenticator:
    return SoftAuthenticator(rp_id=RP_ID, origin=ORIGIN)


@pytest.fixture
def client(settings: Settings) -> Generator[TestClient, None, None]:
    """Full application, edge checkpoint included."""
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def api_client(settings: Settings) -> Generator[TestClient, None, None]:
    """Application without the edge checkpoint, for exercising the inner checkpoints."""
    with TestClient(create_app(settings, edge_guard=False)) as test_client:
        yield test_client


def register_via_api(
    client: TestClient,
    authenticator: SoftAuthenticator,
    email: str = "alice@example.com",
    name: str = "Alice",
) -> Dict:
    """Run a full registration ceremony over HTTP; the client ends up signed in."""
    begin = client.post("/api/auth/passkey/register/begin", json={"email": email, "name": name})
    assert begin.status_code == 200, begin.text
    complete = client.post(
        "/api/auth/passkey/register/complete",
        json={"credential": authenticator.create(begin.json())},
    )
    assert complete.status_code == 200, complete.text
    return complete.json()


@pytest.fixture
def signed_in(api_client: TestClient, authenticator: SoftAuthenticator) -> Dict:
    """Registers alice through the API; ``api_client`` now carries her session cookie."""
    return register_via_api(api_client, authenticator)


@pytest.fixture
def issue_session(db: AsyncSession, settings: Settings) -> Callable:
    async def _issue(account_id: str) -> IssuedSession:
        return await SessionIssuer(db, settings).issue(account_id)

    return _issue
