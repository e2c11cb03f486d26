import logging
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import Admin
from app.auth.schemas import (
    AdminInfo,
    AdminListResponse,
    AdminResponse,
    CallerScope,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    ShortTokenResponse,
)
from app.auth.security import (
    TokenIssuer,
    device_fingerprint,
    hash_password,
    new_session_id,
    verify_password,
)
from app.core.enums import AdminRole
from app.core.exceptions import (
    DuplicateEmailError,
    InvalidCredentialsError,
    InvalidReferenceError,
    NotFoundError,
    UnauthorizedError,
)
from app.core.models import School
from app.core.schemas import PageParams, Pagination

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL_MESSAGE = "Email already registered"


def _admin_to_info(admin: Admin) -> AdminInfo:
    return AdminInfo(
        id=admin.id,
        email=admin.email,
        name=admin.name,
        role=admin.role,
        school_id=admin.school_id,
        is_active=admin.is_active,
        created_at=admin.created_at,
        updated_at=admin.updated_at,
    )


async def _get_live_admin(db: AsyncSession, admin_id: UUID) -> Optional[Admin]:
    result = await db.execute(
        select(Admin).where(Admin.id == admin_id, Admin.deleted_at.is_(None))
    )
    return result.scalar_one_or_none()


async def register_admin(db: AsyncSession, payload: RegisterRequest) -> AdminResponse:
    email = payload.email.strip().lower()

    school_id: Optional[UUID] = None
    if payload.role == AdminRole.SCHOOL_ADMIN:
        school = await db.execute(
            select(School.id).where(School.id == payload.school_id, School.deleted_at.is_(None))
        )
        if school.scalar_one_or_none() is None:
            raise InvalidReferenceError("Invalid school ID")
        school_id = payload.school_id

    existing = await db.execute(select(Admin.id).where(func.lower(Admin.email) == email))
    if existing.scalar_one_or_none() is not None:
        raise DuplicateEmailError(DUPLICATE_EMAIL_MESSAGE)

    admin = Admin(
        email=email,
        password_hash=hash_password(payload.password),
        name=payload.name.strip(),
        role=payload.role.value,
        school_id=school_id,
        is_active=True,
    )
    db.add(admin)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise DuplicateEmailError(DUPLICATE_EMAIL_MESSAGE) from e
    await db.refresh(admin)
    logger.info("Registered %s admin %s", admin.role, admin.id)
    return AdminResponse(admin=_admin_to_info(admin))


async def login_admin(
    db: AsyncSession,
    issuer: TokenIssuer,
    payload: LoginRequest,
    device: Optional[str] = None,
) -> LoginResponse:
    # Unknown email and wrong password must be indistinguishable
    result = await db.execute(
        select(Admin).where(
            func.lower(Admin.email) == payload.email.strip().lower(),
            Admin.deleted_at.is_(None),
        )
    )
    admin: Optional[Admin] = result.scalar_one_or_none()
    if not admin:
        raise InvalidCredentialsError()

    if not verify_password(payload.password, admin.password_hash):
        raise InvalidCredentialsError()

    if not admin.is_active:
        raise UnauthorizedError("Account is inactive")

    long_token = issuer.issue_long_token(user_id=admin.id, user_key=admin.email)
    short_token = issuer.issue_short_token(
        user_id=admin.id,
        user_key=admin.email,
        session_id=new_session_id(),
        device_id=device_fingerprint(device),
        role=admin.role,
        school_id=admin.school_id,
    )
    logger.info("Admin %s logged in", admin.id)
    return LoginResponse(
        admin=_admin_to_info(admin),
        long_token=long_token,
        short_token=short_token,
    )


async def create_short_token(
    db: AsyncSession,
    issuer: TokenIssuer,
    long_claims: Dict[str, Any],
    device: Optional[str] = None,
) -> ShortTokenResponse:
    """
    Mint a short token from a verified long token.

    Role and school_id are re-read from the admin row on every mint, never copied from the
    long token, so a promotion, demotion or school move applies to the next session.
    """
    try:
        admin_id = UUID(str(long_claims.get("user_id")))
    except ValueError:
        raise InvalidCredentialsError("Invalid or expired token")

    admin = await _get_live_admin(db, admin_id)
    if not admin or not admin.is_active:
        raise InvalidCredentialsError("Invalid or expired token")

    short_token = issuer.issue_short_token(
        user_id=admin.id,
        user_key=admin.email,
        session_id=new_session_id(),
        device_id=device_fingerprint(device),
        role=admin.role,
        school_id=admin.school_id,
    )
    return ShortTokenResponse(short_token=short_token)


async def list_admins(db: AsyncSession, params: PageParams) -> AdminListResponse:
    base = select(Admin).where(Admin.deleted_at.is_(None))
    total = (
        await db.execute(select(func.count()).select_from(base.subquery()))
    ).scalar_one()
    result = await db.execute(
        base.order_by(Admin.created_at.desc()).offset(params.offset).limit(params.limit)
    )
    admins = [_admin_to_info(a) for a in result.scalars().all()]
    return AdminListResponse(
        admins=admins,
        pagination=Pagination.build(params.page, params.limit, total),
    )


async def get_admin(db: AsyncSession, admin_id: UUID, scope: CallerScope) -> AdminResponse:
    if not scope.is_superadmin and scope.user_id != admin_id:
        raise UnauthorizedError("Unauthorized access")
    admin = await _get_live_admin(db, admin_id)
    if not admin:
        raise NotFoundError("Admin not found")
    return AdminResponse(admin=_admin_to_info(admin))
