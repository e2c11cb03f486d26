import os
from typing import AsyncGenerator, Callable
from uuid import UUID, uuid4

# Settings are read at import time; point them at throwaway values before importing the app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LONG_TOKEN_SECRET", "test-long-token-secret-min-32-chars-here")
os.environ.setdefault("SHORT_TOKEN_SECRET", "test-short-token-secret-min-32-chars-here")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.auth.models import Admin
from app.auth.schemas import CallerScope
from app.auth.security import TokenIssuer, get_token_issuer, hash_password
from app.core.enums import AdminRole
from app.core.models import Classroom, School
from app.db.session import Base, get_db
from app.main import app

from helpers import TEST_PASSWORD


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test; the FastAPI dependency is overridden to use it."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def issuer() -> TokenIssuer:
    return get_token_issuer()


@pytest.fixture()
async def superadmin(db_session: AsyncSession) -> Admin:
    admin = Admin(
        email="superadmin@test.com",
        password_hash=hash_password(TEST_PASSWORD),
        name="Super Admin",
        role=AdminRole.SUPERADMIN.value,
        school_id=None,
    )
    db_session.add(admin)
    await db_session.commit()
    await db_session.refresh(admin)
    return admin


@pytest.fixture()
def superadmin_scope(superadmin: Admin) -> CallerScope:
    return CallerScope(user_id=superadmin.id, role=AdminRole.SUPERADMIN)


@pytest.fixture()
def school_admin_scope() -> Callable[[UUID], CallerScope]:
    def _scope(school_id: UUID) -> CallerScope:
        return CallerScope(user_id=uuid4(), role=AdminRole.SCHOOL_ADMIN, school_id=school_id)

    return _scope


@pytest.fixture()
def make_school(db_session: AsyncSession):
    async def _make(name: str = "Test School", address: str = "123 Test St", **fields) -> School:
        school = School(name=name, address=address, **fields)
        db_session.add(school)
        await db_session.commit()
        await db_session.refresh(school)
        return school

    return _make


@pytest.fixture()
def make_classroom(db_session: AsyncSession):
    async def _make(school_id: UUID, name: str = "Class 1", **fields) -> Classroom:
        values = {"grade": "1", "section": "A", "capacity": 30, "min_age": 5, "max_age": 10}
        values.update(fields)
        classroom = Classroom(school_id=school_id, name=name, **values)
        db_session.add(classroom)
        await db_session.commit()
        await db_session.refresh(classroom)
        return classroom

    return _make
