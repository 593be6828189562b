import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from typing import AsyncGenerator, Dict

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.enums import RoleId
from app.core.models import Hostel
from app.core.scope import ScopeFilter
from app.db.session import Base, get_db

from factories import auth_headers, build_file_engine, make_hostel


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture()
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """One in-memory SQLite DB per test; StaticPool keeps every session on the same connection."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture()
async def db_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for a test and override FastAPI dependency."""
    async_session = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def admin_scope() -> ScopeFilter:
    return ScopeFilter.admin(user_id=1)


@pytest.fixture()
async def hostel(db_session: AsyncSession) -> Hostel:
    return await make_hostel(db_session, "Green PG")


@pytest.fixture()
async def other_hostel(db_session: AsyncSession) -> Hostel:
    return await make_hostel(db_session, "Blue PG")


@pytest.fixture()
def owner_scope(hostel: Hostel) -> ScopeFilter:
    return ScopeFilter.owner(hostel.hostel_id, user_id=2)


@pytest.fixture()
def admin_headers() -> Dict[str, str]:
    return auth_headers(1, RoleId.ADMIN)


@pytest.fixture()
async def file_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    engine = await build_file_engine(tmp_path / "ledger.db")
    yield engine
    await engine.dispose()


@pytest.fixture()
async def serialized_file_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    engine = await build_file_engine(tmp_path / "ledger.db", serialize_writers=True)
    yield engine
    await engine.dispose()
