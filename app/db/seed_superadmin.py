"""
Seed script to create the first superadmin.

Run once (after schema_check) with env set:
  SUPERADMIN_EMAIL=admin@yourschool.org
  SUPERADMIN_PASSWORD=YourSecurePassword
  SUPERADMIN_NAME="Platform Admin"   (optional)

If an admin with that email already exists it is promoted to superadmin and its
password reset; nothing else is touched.
"""
import asyncio
import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import Admin
from app.auth.security import hash_password
from app.core.config import settings
from app.core.enums import AdminRole
from app.core.logging import setup_logging
from app.db.session import AsyncSessionLocal

logger = logging.getLogger(__name__)

DEFAULT_SUPERADMIN_NAME = "Super Admin"
MIN_PASSWORD_LENGTH = 8


async def seed_superadmin(db: AsyncSession, email: str, password: str, name: str) -> Admin:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Superadmin password must be at least {MIN_PASSWORD_LENGTH} characters")
    email = email.strip().lower()

    result = await db.execute(select(Admin).where(func.lower(Admin.email) == email))
    admin = result.scalar_one_or_none()
    if not admin:
        admin = Admin(
            email=email,
            password_hash=hash_password(password),
            name=name,
            role=AdminRole.SUPERADMIN.value,
            school_id=None,
            is_active=True,
        )
        db.add(admin)
        logger.info("Creating superadmin")
    else:
        admin.role = AdminRole.SUPERADMIN.value
        admin.school_id = None
        admin.password_hash = hash_password(password)
        admin.deleted_at = None
        admin.is_active = True
        logger.info("Promoting existing admin %s to superadmin", admin.id)

    await db.commit()
    await db.refresh(admin)
    return admin


async def main() -> None:
    setup_logging()
    if not settings.superadmin_email or not settings.superadmin_password:
        logger.error("SUPERADMIN_EMAIL and SUPERADMIN_PASSWORD must be set")
        raise SystemExit(1)
    async with AsyncSessionLocal() as db:
        try:
            admin = await seed_superadmin(
                db,
                settings.superadmin_email,
                settings.superadmin_password,
                settings.superadmin_name or DEFAULT_SUPERADMIN_NAME,
            )
        except Exception:
            await db.rollback()
            logger.exception("Superadmin seed failed")
            raise
    logger.info("Superadmin ready: %s", admin.id)


if __name__ == "__main__":
    asyncio.run(main())
