import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from app.auth.models import Admin
from app.auth.security import verify_password
from app.core.enums import AdminRole
from app.db.schema_check import REQUIRED_TABLES, ensure_schema, missing_tables
from app.db.seed_superadmin import seed_superadmin


async def test_ensure_schema_creates_missing_tables() -> None:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    try:
        assert sorted(await missing_tables(engine)) == sorted(REQUIRED_TABLES)
        created = await ensure_schema(engine)
        assert sorted(created) == sorted(REQUIRED_TABLES)
        assert await missing_tables(engine) == []
        # Second run is a no-op
        assert await ensure_schema(engine) == []
    finally:
        await engine.dispose()


async def test_seed_creates_superadmin(db_session: AsyncSession) -> None:
    admin = await seed_superadmin(db_session, " Root@Example.com ", "LongEnough1", "Root")
    assert admin.email == "root@example.com"
    assert admin.role == AdminRole.SUPERADMIN.value
    assert admin.school_id is None
    assert verify_password("LongEnough1", admin.password_hash)


async def test_seed_promotes_existing_admin(db_session: AsyncSession, make_school) -> None:
    school = await make_school()
    existing = Admin(
        email="root@example.com",
        password_hash="x",
        name="Was School Admin",
        role=AdminRole.SCHOOL_ADMIN.value,
        school_id=school.id,
    )
    db_session.add(existing)
    await db_session.commit()

    admin = await seed_superadmin(db_session, "root@example.com", "LongEnough1", "Root")
    assert admin.id == existing.id
    assert admin.role == AdminRole.SUPERADMIN.value
    assert admin.school_id is None
    assert admin.name == "Was School Admin"


async def test_seed_rejects_short_password(db_session: AsyncSession) -> None:
    with pytest.raises(ValueError):
        await seed_superadmin(db_session, "root@example.com", "short", "Root")
