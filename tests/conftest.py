"""
Test infrastructure for the Blog API.

Strategy
--------
- SQLite in-memory via aiosqlite removes the need for a running Postgres
  instance, keeping the suite fast and self-contained.
- StaticPool makes every session share the one in-memory connection; a
  second connection would see an empty database.
- Foreign keys are switched on for every connection so deletes are refused
  the way PostgreSQL refuses them.
- The app's get_db dependency is overridden so every request uses the test
  session factory.  The auth dependency depends on get_db, so it follows.
- All tables are created before each test and dropped after.
- Accounts are created through ``POST /register`` so tests exercise the
  real token path; the admin fixture then flips ``is_admin`` directly.
"""
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event, update
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from blog_api.database import Base, get_db
from blog_api.main import app
from blog_api.middleware import install_query_counter
from blog_api.models import User

PASSWORD = "Secr3t!pw"

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# SQLite leaves foreign keys unenforced unless asked; PostgreSQL always
# enforces them.
@event.listens_for(engine_test.sync_engine, "connect")
def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ---------------------------------------------------------------------------
# Dependency override: replace production get_db with the test session factory
# ---------------------------------------------------------------------------

async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """A live AsyncSession for service-level tests and direct ORM assertions."""
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def _register(client: AsyncClient, name: str, email: str) -> dict:
    resp = await client.post("/register", json={
        "name": name,
        "email": email,
        "password": PASSWORD,
    })
    assert resp.status_code == 201, resp.text
    return {"Authorization": f"Bearer {resp.json()['data']['token']}"}


@pytest_asyncio.fixture
async def user_headers(async_client: AsyncClient) -> dict:
    """Bearer headers for a regular user (Alice)."""
    return await _register(async_client, "Alice Author", "alice@example.com")


@pytest_asyncio.fixture
async def other_headers(async_client: AsyncClient) -> dict:
    """Bearer headers for a second regular user (Bob)."""
    return await _register(async_client, "Bob Reader", "bob@example.com")


@pytest_asyncio.fixture
async def admin_headers(async_client: AsyncClient) -> dict:
    """Bearer headers for an administrator."""
    headers = await _register(async_client, "Ada Admin", "admin@example.com")
    async with async_session_test() as session:
        await session.execute(
            update(User).where(User.email == "admin@example.com").values(is_admin=True)
        )
        await session.commit()
    return headers


@pytest.fixture
def expose_errors(monkeypatch):
    """Temporarily echo raw exception text in 500 responses."""
    from blog_api.config import settings

    monkeypatch.setattr(settings, "EXPOSE_ERROR_DETAILS", True)
