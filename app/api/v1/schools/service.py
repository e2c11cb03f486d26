import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.schemas import CallerScope
from app.core.clock import utcnow
from app.core.exceptions import (
    ConflictError,
    HasActiveChildrenError,
    NotFoundError,
    ValidationError,
)
from app.core.models import Classroom, School, Student
from app.core.schemas import PageParams, Pagination

from .schemas import SchoolCreate, SchoolEnvelope, SchoolListResponse, SchoolResponse, SchoolUpdate

logger = logging.getLogger(__name__)

DUPLICATE_SCHOOL_MESSAGE = "School with this name and address already exists"
SCHOOL_NOT_FOUND = "School not found"
RESTORE_CONFLICT_MESSAGE = "Cannot restore: an active school with this name and address already exists"


def _school_to_response(s: School) -> SchoolResponse:
    return SchoolResponse.model_validate(s)


async def get_active_school(db: AsyncSession, school_id: UUID) -> Optional[School]:
    """Non-deleted school by id, or None. Shared by the classroom and student services."""
    result = await db.execute(
        select(School).where(School.id == school_id, School.deleted_at.is_(None))
    )
    return result.scalar_one_or_none()


async def _get_scoped_school(db: AsyncSession, scope: CallerScope, school_id: UUID) -> School:
    # Cross-school access is reported exactly like a missing school
    if not scope.can_access(school_id):
        raise NotFoundError(SCHOOL_NOT_FOUND)
    school = await get_active_school(db, school_id)
    if not school:
        raise NotFoundError(SCHOOL_NOT_FOUND)
    return school


async def _name_address_taken(
    db: AsyncSession, name: str, address: str, exclude_id: Optional[UUID] = None
) -> bool:
    stmt = select(School.id).where(
        School.name == name,
        School.address == address,
        School.deleted_at.is_(None),
    )
    if exclude_id is not None:
        stmt = stmt.where(School.id != exclude_id)
    result = await db.execute(stmt.limit(1))
    return result.scalar_one_or_none() is not None


async def create_school(
    db: AsyncSession,
    scope: CallerScope,
    payload: SchoolCreate,
) -> SchoolEnvelope:
    name = payload.name.strip()
    address = payload.address.strip()
    if await _name_address_taken(db, name, address):
        raise ConflictError(DUPLICATE_SCHOOL_MESSAGE)

    school = School(
        name=name,
        address=address,
        phone=payload.phone,
        email=payload.email.lower() if payload.email else None,
        principal=payload.principal,
        established_year=payload.established_year,
        is_active=True,
        created_by=scope.user_id,
    )
    db.add(school)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError(DUPLICATE_SCHOOL_MESSAGE) from e
    await db.refresh(school)
    logger.info("School %s created by %s", school.id, scope.user_id)
    return SchoolEnvelope(school=_school_to_response(school))


async def list_schools(
    db: AsyncSession,
    scope: CallerScope,
    params: PageParams,
    is_active: Optional[bool] = None,
) -> SchoolListResponse:
    stmt = select(School).where(School.deleted_at.is_(None))
    if not scope.is_superadmin:
        stmt = stmt.where(School.id == scope.school_id)
    if is_active is not None:
        stmt = stmt.where(School.is_active == is_active)
    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    result = await db.execute(
        stmt.order_by(School.created_at.desc()).offset(params.offset).limit(params.limit)
    )
    return SchoolListResponse(
        schools=[_school_to_response(s) for s in result.scalars().all()],
        pagination=Pagination.build(params.page, params.limit, total),
    )


async def get_school(db: AsyncSession, scope: CallerScope, school_id: UUID) -> SchoolEnvelope:
    school = await _get_scoped_school(db, scope, school_id)
    return SchoolEnvelope(school=_school_to_response(school))


async def update_school(
    db: AsyncSession,
    scope: CallerScope,
    school_id: UUID,
    payload: SchoolUpdate,
) -> SchoolEnvelope:
    school = await _get_scoped_school(db, scope, school_id)
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No fields to update")

    if "name" in changes:
        changes["name"] = changes["name"].strip()
    if "address" in changes:
        changes["address"] = changes["address"].strip()
    if changes.get("email"):
        changes["email"] = changes["email"].lower()

    name = changes.get("name", school.name)
    address = changes.get("address", school.address)
    if (name, address) != (school.name, school.address) and await _name_address_taken(
        db, name, address, exclude_id=school.id
    ):
        raise ConflictError(DUPLICATE_SCHOOL_MESSAGE)

    for field, value in changes.items():
        setattr(school, field, value)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError(DUPLICATE_SCHOOL_MESSAGE) from e
    await db.refresh(school)
    logger.info("School %s updated (%s)", school.id, ", ".join(sorted(changes)))
    return SchoolEnvelope(school=_school_to_response(school))


async def delete_school(db: AsyncSession, scope: CallerScope, school_id: UUID) -> SchoolEnvelope:
    school = await _get_scoped_school(db, scope, school_id)

    classroom_count = (
        await db.execute(
            select(func.count(Classroom.id)).where(
                Classroom.school_id == school_id, Classroom.deleted_at.is_(None)
            )
        )
    ).scalar_one()
    if classroom_count > 0:
        raise HasActiveChildrenError("Cannot delete school with active classrooms")

    student_count = (
        await db.execute(
            select(func.count(Student.id)).where(
                Student.school_id == school_id, Student.deleted_at.is_(None)
            )
        )
    ).scalar_one()
    if student_count > 0:
        raise HasActiveChildrenError("Cannot delete school with active students")

    school.deleted_at = utcnow()
    await db.commit()
    await db.refresh(school)
    logger.info("School %s soft-deleted by %s", school.id, scope.user_id)
    return SchoolEnvelope(school=_school_to_response(school), message="School deleted successfully")


async def restore_school(db: AsyncSession, scope: CallerScope, school_id: UUID) -> SchoolEnvelope:
    if not scope.can_access(school_id):
        raise NotFoundError(SCHOOL_NOT_FOUND)
    school = await db.get(School, school_id)
    if not school:
        raise NotFoundError(SCHOOL_NOT_FOUND)
    if school.deleted_at is None:
        raise ValidationError("School is not deleted")

    if await _name_address_taken(db, school.name, school.address, exclude_id=school.id):
        raise ConflictError(RESTORE_CONFLICT_MESSAGE)

    school.deleted_at = None
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError(RESTORE_CONFLICT_MESSAGE) from e
    await db.refresh(school)
    logger.info("School %s restored by %s", school.id, scope.user_id)
    return SchoolEnvelope(school=_school_to_response(school), message="School restored successfully")
