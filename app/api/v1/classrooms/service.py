import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.schemas import CallerScope
from app.core.clock import utcnow
from app.core.exceptions import (
    CapacityError,
    ConflictError,
    HasActiveChildrenError,
    NotFoundError,
    ValidationError,
)
from app.core.models import Classroom, Student
from app.core.schemas import PageParams, Pagination
from app.api.v1.schools import service as school_service

from .schemas import (
    ClassroomCreate,
    ClassroomEnvelope,
    ClassroomListResponse,
    ClassroomResponse,
    ClassroomUpdate,
    ResourceItem,
)

logger = logging.getLogger(__name__)

DUPLICATE_CLASSROOM_MESSAGE = "Classroom with this name, grade and section already exists in this school"
CLASSROOM_NOT_FOUND = "Classroom not found"


def _classroom_to_response(c: Classroom) -> ClassroomResponse:
    return ClassroomResponse(
        id=c.id,
        school_id=c.school_id,
        name=c.name,
        grade=c.grade,
        section=c.section,
        capacity=c.capacity,
        current_enrollment=c.current_enrollment,
        available_slots=max(c.capacity - c.current_enrollment, 0),
        min_age=c.min_age,
        max_age=c.max_age,
        resources=[ResourceItem(**r) for r in (c.resources or [])],
        is_active=c.is_active,
        created_at=c.created_at,
        updated_at=c.updated_at,
    )


async def get_active_classroom(
    db: AsyncSession,
    classroom_id: UUID,
    school_id: Optional[UUID] = None,
) -> Optional[Classroom]:
    """Non-deleted classroom, optionally required to belong to school_id."""
    stmt = select(Classroom).where(Classroom.id == classroom_id, Classroom.deleted_at.is_(None))
    if school_id is not None:
        stmt = stmt.where(Classroom.school_id == school_id)
    # Counters are written with Core UPDATEs that bypass the identity map; always reload
    result = await db.execute(stmt.execution_options(populate_existing=True))
    return result.scalar_one_or_none()


async def count_active_students(db: AsyncSession, classroom_id: UUID) -> int:
    result = await db.execute(
        select(func.count(Student.id)).where(
            Student.classroom_id == classroom_id, Student.deleted_at.is_(None)
        )
    )
    return result.scalar_one()


async def adjust_enrollment(db: AsyncSession, classroom_id: UUID, delta: int) -> bool:
    """
    Atomically add delta to current_enrollment iff the result stays within [0, capacity]
    and the classroom is not deleted. Returns False when the guard rejected the write.

    Capacity check and increment are one statement, so concurrent enrollments into the
    same classroom cannot both pass on a stale read. Does not commit.
    """
    stmt = (
        update(Classroom)
        .where(
            Classroom.id == classroom_id,
            Classroom.deleted_at.is_(None),
            Classroom.current_enrollment + delta >= 0,
            Classroom.current_enrollment + delta <= Classroom.capacity,
        )
        .values(current_enrollment=Classroom.current_enrollment + delta, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount == 1


async def _get_scoped_classroom(db: AsyncSession, scope: CallerScope, classroom_id: UUID) -> Classroom:
    classroom = await get_active_classroom(db, classroom_id)
    if not classroom or not scope.can_access(classroom.school_id):
        raise NotFoundError(CLASSROOM_NOT_FOUND)
    return classroom


async def _slot_taken(
    db: AsyncSession,
    school_id: UUID,
    name: str,
    grade: str,
    section: str,
    exclude_id: Optional[UUID] = None,
) -> bool:
    stmt = select(Classroom.id).where(
        Classroom.school_id == school_id,
        Classroom.name == name,
        Classroom.grade == grade,
        Classroom.section == section,
        Classroom.deleted_at.is_(None),
    )
    if exclude_id is not None:
        stmt = stmt.where(Classroom.id != exclude_id)
    result = await db.execute(stmt.limit(1))
    return result.scalar_one_or_none() is not None


async def create_classroom(
    db: AsyncSession,
    scope: CallerScope,
    payload: ClassroomCreate,
) -> ClassroomEnvelope:
    if not scope.can_access(payload.school_id):
        raise NotFoundError(school_service.SCHOOL_NOT_FOUND)
    school = await school_service.get_active_school(db, payload.school_id)
    if not school:
        raise NotFoundError(school_service.SCHOOL_NOT_FOUND)

    name = payload.name.strip()
    grade = payload.grade.strip()
    section = payload.section.strip()
    if await _slot_taken(db, school.id, name, grade, section):
        raise ConflictError(DUPLICATE_CLASSROOM_MESSAGE)

    classroom = Classroom(
        school_id=school.id,
        name=name,
        grade=grade,
        section=section,
        capacity=payload.capacity,
        current_enrollment=0,
        min_age=payload.min_age,
        max_age=payload.max_age,
        resources=[r.model_dump() for r in payload.resources],
        is_active=True,
    )
    db.add(classroom)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError(DUPLICATE_CLASSROOM_MESSAGE) from e
    await db.refresh(classroom)
    logger.info("Classroom %s created in school %s", classroom.id, school.id)
    return ClassroomEnvelope(classroom=_classroom_to_response(classroom))


async def list_classrooms(
    db: AsyncSession,
    scope: CallerScope,
    params: PageParams,
    school_id: Optional[UUID] = None,
    is_active: Optional[bool] = None,
) -> ClassroomListResponse:
    # school_admin: the filter is replaced by their own school, never widened
    school_id = scope.narrow(school_id)
    stmt = select(Classroom).where(Classroom.deleted_at.is_(None))
    if school_id is not None:
        stmt = stmt.where(Classroom.school_id == school_id)
    if is_active is not None:
        stmt = stmt.where(Classroom.is_active == is_active)
    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    result = await db.execute(
        stmt.order_by(Classroom.created_at.desc()).offset(params.offset).limit(params.limit)
    )
    return ClassroomListResponse(
        classrooms=[_classroom_to_response(c) for c in result.scalars().all()],
        pagination=Pagination.build(params.page, params.limit, total),
    )


async def get_classroom(db: AsyncSession, scope: CallerScope, classroom_id: UUID) -> ClassroomEnvelope:
    classroom = await _get_scoped_classroom(db, scope, classroom_id)
    return ClassroomEnvelope(classroom=_classroom_to_response(classroom))


async def update_classroom(
    db: AsyncSession,
    scope: CallerScope,
    classroom_id: UUID,
    payload: ClassroomUpdate,
) -> ClassroomEnvelope:
    classroom = await _get_scoped_classroom(db, scope, classroom_id)
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No fields to update")

    min_age = changes.get("min_age", classroom.min_age)
    max_age = changes.get("max_age", classroom.max_age)
    if min_age > max_age:
        raise ValidationError("min_age cannot be greater than max_age")

    for field in ("name", "grade", "section"):
        if field in changes:
            changes[field] = changes[field].strip()
    name = changes.get("name", classroom.name)
    grade = changes.get("grade", classroom.grade)
    section = changes.get("section", classroom.section)
    if (name, grade, section) != (classroom.name, classroom.grade, classroom.section) and await _slot_taken(
        db, classroom.school_id, name, grade, section, exclude_id=classroom.id
    ):
        raise ConflictError(DUPLICATE_CLASSROOM_MESSAGE)

    capacity = changes.pop("capacity", None)
    for field, value in changes.items():
        setattr(classroom, field, value)

    try:
        if capacity is not None:
            # Conditional write: never let capacity drop under the live counter
            result = await db.execute(
                update(Classroom)
                .where(Classroom.id == classroom.id, Classroom.current_enrollment <= capacity)
                .values(capacity=capacity, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await db.rollback()
                await db.refresh(classroom)
                raise CapacityError(
                    f"Cannot reduce capacity below current enrollment ({classroom.current_enrollment})"
                )
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError(DUPLICATE_CLASSROOM_MESSAGE) from e
    await db.refresh(classroom)
    logger.info("Classroom %s updated", classroom.id)
    return ClassroomEnvelope(classroom=_classroom_to_response(classroom))


async def delete_classroom(db: AsyncSession, scope: CallerScope, classroom_id: UUID) -> ClassroomEnvelope:
    classroom = await _get_scoped_classroom(db, scope, classroom_id)
    # Live count, not the cached counter
    if await count_active_students(db, classroom.id) > 0:
        raise HasActiveChildrenError("Cannot delete classroom with active students")

    classroom.deleted_at = utcnow()
    classroom.current_enrollment = 0
    await db.commit()
    await db.refresh(classroom)
    logger.info("Classroom %s soft-deleted by %s", classroom.id, scope.user_id)
    return ClassroomEnvelope(classroom=_classroom_to_response(classroom), message="Classroom deleted successfully")


async def restore_classroom(db: AsyncSession, scope: CallerScope, classroom_id: UUID) -> ClassroomEnvelope:
    classroom = await db.get(Classroom, classroom_id, populate_existing=True)
    if not classroom or not scope.can_access(classroom.school_id):
        raise NotFoundError(CLASSROOM_NOT_FOUND)
    if classroom.deleted_at is None:
        raise ValidationError("Classroom is not deleted")

    if not await school_service.get_active_school(db, classroom.school_id):
        raise ValidationError("Cannot restore: School is deleted or not found")

    if await _slot_taken(
        db, classroom.school_id, classroom.name, classroom.grade, classroom.section, exclude_id=classroom.id
    ):
        raise ConflictError("Cannot restore: " + DUPLICATE_CLASSROOM_MESSAGE)

    enrolled = await count_active_students(db, classroom.id)
    classroom.deleted_at = None
    classroom.current_enrollment = enrolled
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("Cannot restore: " + DUPLICATE_CLASSROOM_MESSAGE) from e
    await db.refresh(classroom)
    logger.info("Classroom %s restored by %s", classroom.id, scope.user_id)
    return ClassroomEnvelope(classroom=_classroom_to_response(classroom), message="Classroom restored successfully")
