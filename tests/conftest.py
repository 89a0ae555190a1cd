"""
Shared fixtures: in-memory SQLite database and an API client with overridden
dependencies. Settings are read at import time, so the environment is set first.
"""
import os

os.environ["APP_ENV"] = "test"
os.environ["APP_DEBUG"] = "false"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-with-enough-length")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_dummy")
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["SENDGRID_API_KEY"] = ""

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import artsafe.models  # noqa: F401
from artsafe.database import Base, get_db
from artsafe.api.deps import get_session_factory
from artsafe.core.permissions import Role
from artsafe.main import app
from tests.factories import make_profile, make_artwork


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def buyer(db):
    return await make_profile(db, Role.BUYER, name="Bo Buyer")


@pytest_asyncio.fixture
async def seller(db):
    return await make_profile(db, Role.ARTIST, name="Anna Ancher", stripe_account_id="acct_seller")


@pytest_asyncio.fixture
async def admin(db):
    return await make_profile(db, Role.ADMIN, name="Ada Admin")


@pytest_asyncio.fixture
async def artwork(db, seller):
    return await make_artwork(db, seller)
