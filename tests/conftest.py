"""
Test infrastructure for the Blog API.

Strategy
--------
- SQLite in-memory via aiosqlite, so no Postgres is needed in CI.
- StaticPool makes every session share the one in-memory connection;
  a second connection would see an empty database.
- The app's get_db dependency is overridden with the test session factory.
- Tables are created before and dropped after each test.
- Redis is disabled by setting cache._redis = None; CacheManager treats
  that as "always miss, never write".
- Accounts are inserted directly with a pre-computed bcrypt hash and
  tokens minted with auth_service, so only the auth tests pay for
  bcrypt.  The concurrency tests that need a real multi-connection store
  live in test_vote_concurrency.py and run against Postgres only.
"""
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from blog_api.cache import cache
from blog_api.database import Base, get_db
from blog_api.main import app
from blog_api.middleware import install_query_counter
from blog_api.models import Suggestion, User
from blog_api.services import auth_service

# ---------------------------------------------------------------------------
# Test database engine — SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)

TEST_PASSWORD = "correct-horse"
_TEST_PASSWORD_HASH = auth_service.get_password_hash(TEST_PASSWORD)


# ---------------------------------------------------------------------------
# Dependency override
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
# Helpers
# ---------------------------------------------------------------------------

async def create_user(
    db: AsyncSession,
    username: str,
    role: str = "reader",
    email: str | None = None,
) -> User:
    user = User(
        username=username,
        email=email or f"{username}@example.com",
        password_hash=_TEST_PASSWORD_HASH,
        role=role,
    )
    db.add(user)
    await db.flush()
    return user


async def create_suggestion(
    db: AsyncSession,
    user_id: int,
    title: str,
    created_at: datetime | None = None,
) -> Suggestion:
    suggestion = Suggestion(
        title=title,
        description=f"{title} please",
        user_id=user_id,
        created_at=created_at or datetime.now(timezone.utc),
    )
    db.add(suggestion)
    await db.flush()
    return suggestion


def auth_header(user: User) -> dict:
    return {"Authorization": f"Bearer {auth_service.create_access_token(user)}"}


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
    """A live AsyncSession for seeding data and calling services directly."""
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """httpx.AsyncClient wired to the app via ASGITransport, Redis disabled."""
    cache._redis = None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> User:
    user = await create_user(db_session, "admin", role="admin")
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def alice(db_session: AsyncSession) -> User:
    user = await create_user(db_session, "alice")
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def bob(db_session: AsyncSession) -> User:
    user = await create_user(db_session, "bob")
    await db_session.commit()
    return user


@pytest.fixture
def admin_headers(admin: User) -> dict:
    return auth_header(admin)


@pytest.fixture
def alice_headers(alice: User) -> dict:
    return auth_header(alice)


@pytest.fixture
def bob_headers(bob: User) -> dict:
    return auth_header(bob)
