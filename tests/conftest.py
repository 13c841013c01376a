import os

# Must be set before invoicer.config is imported anywhere
TEST_APP_PASSWORD = "test-app-password"
os.environ["APP_PASSWORD"] = TEST_APP_PASSWORD
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_invoicer.db")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from invoicer.main import app
from invoicer.database import Base, get_db
import invoicer.models  # noqa: F401 -- register all models with metadata


@pytest.fixture
def auth_headers() -> dict:
    return {"x-app-password": TEST_APP_PASSWORD}


@pytest_asyncio.fixture
async def test_db():
    """Create a fresh in-memory SQLite database with all tables.

    StaticPool keeps every operation on one connection so the in-memory
    database survives between statements.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """Session factory over a file database, one connection per session.

    Needed where several sessions must run at the same time.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'invoicer.db'}",
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def client(test_db: AsyncSession):
    """Create test client with overridden database, no credentials."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def authenticated_client(client: AsyncClient, auth_headers: dict):
    """Test client that sends the shared secret on every request."""
    client.headers.update(auth_headers)
    return client
