"""
Student lifecycle: batch enroll, update, transfer, soft delete and restore.

Every operation that moves a student in or out of a classroom changes the classroom's
current_enrollment through classroom_service.adjust_enrollment inside the same
transaction as the student write, so a failure at any step rolls back all of them.
"""
import logging
from typing import Dict, List, Optional, Set
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.schemas import CallerScope
from app.core.clock import age_in_years, utcnow
from app.core.exceptions import (
    AgeRangeError,
    CapacityError,
    DuplicateEmailError,
    NotFoundError,
    ValidationError,
)
from app.core.models import Classroom, Student
from app.core.schemas import PageParams, Pagination
from app.api.v1.classrooms import service as classroom_service
from app.api.v1.schools import service as school_service

from .schemas import (
    EnrollFailure,
    EnrollResponse,
    StudentEnrollRequest,
    StudentEnvelope,
    StudentListResponse,
    StudentResponse,
    StudentUpdate,
    TransferEntry,
    TransferRequest,
)

logger = logging.getLogger(__name__)

STUDENT_NOT_FOUND = "Student not found"
DUPLICATE_EMAIL_MESSAGE = "Email already registered"


def _student_to_response(s: Student) -> StudentResponse:
    return StudentResponse(
        id=s.id,
        school_id=s.school_id,
        classroom_id=s.classroom_id,
        first_name=s.first_name,
        last_name=s.last_name,
        date_of_birth=s.date_of_birth,
        age=age_in_years(s.date_of_birth),
        gender=s.gender,
        email=s.email,
        phone=s.phone,
        address=s.address,
        guardian_name=s.guardian_name,
        guardian_phone=s.guardian_phone,
        enrollment_date=s.enrollment_date,
        is_active=s.is_active,
        transfer_history=[TransferEntry(**entry) for entry in (s.transfer_history or [])],
        created_at=s.created_at,
        updated_at=s.updated_at,
    )


def check_age_fits(date_of_birth, classroom: Classroom) -> None:
    age = age_in_years(date_of_birth)
    if not classroom.min_age <= age <= classroom.max_age:
        raise AgeRangeError(
            f"Student age must be between {classroom.min_age} and {classroom.max_age} years (got {age})"
        )


async def _email_taken(db: AsyncSession, email: str, exclude_id: Optional[UUID] = None) -> bool:
    # Emails stay reserved by soft-deleted students too
    stmt = select(Student.id).where(Student.email == email)
    if exclude_id is not None:
        stmt = stmt.where(Student.id != exclude_id)
    result = await db.execute(stmt.limit(1))
    return result.scalar_one_or_none() is not None


async def _get_scoped_student(db: AsyncSession, scope: CallerScope, student_id: UUID) -> Student:
    result = await db.execute(
        select(Student).where(Student.id == student_id, Student.deleted_at.is_(None))
    )
    student = result.scalar_one_or_none()
    if not student or not scope.can_access(student.school_id):
        raise NotFoundError(STUDENT_NOT_FOUND)
    return student


async def _release_seat(db: AsyncSession, classroom_id: UUID) -> None:
    if not await classroom_service.adjust_enrollment(db, classroom_id, -1):
        # Counter already at 0: it drifted from the live student count; resync it
        classroom = await db.get(Classroom, classroom_id, populate_existing=True)
        if classroom is not None:
            classroom.current_enrollment = await classroom_service.count_active_students(db, classroom_id)
        logger.warning("Enrollment counter drift corrected for classroom %s", classroom_id)


async def enroll_students(
    db: AsyncSession,
    scope: CallerScope,
    payload: StudentEnrollRequest,
) -> EnrollResponse:
    """
    Enroll a batch into one classroom.

    The capacity gate is all-or-nothing and uses the full batch size up front. After that,
    each student is checked independently (email, age) and failures are reported per index.
    The counter is incremented once by the number actually enrolled, through a conditional
    update that rejects the whole batch if a concurrent enrollment took the seats meanwhile.
    """
    if not scope.can_access(payload.school_id):
        raise NotFoundError(school_service.SCHOOL_NOT_FOUND)
    school = await school_service.get_active_school(db, payload.school_id)
    if not school:
        raise NotFoundError(school_service.SCHOOL_NOT_FOUND)
    classroom = await classroom_service.get_active_classroom(db, payload.classroom_id, school_id=school.id)
    if not classroom:
        raise NotFoundError(classroom_service.CLASSROOM_NOT_FOUND)

    requested = len(payload.students)
    available = classroom.capacity - classroom.current_enrollment
    if requested > available:
        raise CapacityError(f"Not enough capacity. Requested: {requested}, available slots: {max(available, 0)}")

    emails = [item.email.lower() for item in payload.students if item.email]
    taken: Set[str] = set()
    if emails:
        result = await db.execute(select(Student.email).where(Student.email.in_(emails)))
        taken = {row[0] for row in result.all()}

    accepted: List[Student] = []
    errors: List[EnrollFailure] = []
    for index, item in enumerate(payload.students):
        email = item.email.lower() if item.email else None
        if email and email in taken:
            errors.append(EnrollFailure(index=index, error=DUPLICATE_EMAIL_MESSAGE))
            continue
        try:
            check_age_fits(item.date_of_birth, classroom)
        except AgeRangeError as e:
            errors.append(EnrollFailure(index=index, error=e.message))
            continue
        if email:
            # Later rows in the same batch may not reuse it either
            taken.add(email)
        accepted.append(
            Student(
                school_id=school.id,
                classroom_id=classroom.id,
                first_name=item.first_name.strip(),
                last_name=item.last_name.strip(),
                date_of_birth=item.date_of_birth,
                gender=item.gender.value,
                email=email,
                phone=item.phone,
                address=item.address,
                guardian_name=item.guardian_name.strip(),
                guardian_phone=item.guardian_phone,
                is_active=True,
                transfer_history=[],
            )
        )

    # Rollback expires every instance; keep plain ids for anything after it
    classroom_id = classroom.id
    school_id = school.id
    if accepted:
        db.add_all(accepted)
        try:
            if not await classroom_service.adjust_enrollment(db, classroom_id, len(accepted)):
                await db.rollback()
                logger.warning(
                    "Enrollment into classroom %s lost a capacity race; batch of %d rejected",
                    classroom_id,
                    requested,
                )
                raise CapacityError("Classroom capacity changed during enrollment; no students were enrolled")
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise DuplicateEmailError(DUPLICATE_EMAIL_MESSAGE) from e
        for student in accepted:
            await db.refresh(student)

    logger.info(
        "Enrolled %d/%d students into classroom %s (school %s)",
        len(accepted),
        requested,
        classroom_id,
        school_id,
    )
    return EnrollResponse(
        students=[_student_to_response(s) for s in accepted],
        enrolled=len(accepted),
        failed=len(errors),
        errors=errors or None,
    )


async def list_students(
    db: AsyncSession,
    scope: CallerScope,
    params: PageParams,
    school_id: Optional[UUID] = None,
    classroom_id: Optional[UUID] = None,
    is_active: Optional[bool] = None,
) -> StudentListResponse:
    school_id = scope.narrow(school_id)
    stmt = select(Student).where(Student.deleted_at.is_(None))
    if school_id is not None:
        stmt = stmt.where(Student.school_id == school_id)
    if classroom_id is not None:
        stmt = stmt.where(Student.classroom_id == classroom_id)
    if is_active is not None:
        stmt = stmt.where(Student.is_active == is_active)
    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    result = await db.execute(
        stmt.order_by(Student.created_at.desc()).offset(params.offset).limit(params.limit)
    )
    return StudentListResponse(
        students=[_student_to_response(s) for s in result.scalars().all()],
        pagination=Pagination.build(params.page, params.limit, total),
    )


async def get_student(db: AsyncSession, scope: CallerScope, student_id: UUID) -> StudentEnvelope:
    student = await _get_scoped_student(db, scope, student_id)
    return StudentEnvelope(student=_student_to_response(student))


async def update_student(
    db: AsyncSession,
    scope: CallerScope,
    student_id: UUID,
    payload: StudentUpdate,
) -> StudentEnvelope:
    student = await _get_scoped_student(db, scope, student_id)
    changes: Dict = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No fields to update")

    if changes.get("email"):
        changes["email"] = changes["email"].lower()
        if changes["email"] != student.email and await _email_taken(db, changes["email"], exclude_id=student.id):
            raise DuplicateEmailError(DUPLICATE_EMAIL_MESSAGE)

    if "date_of_birth" in changes and changes["date_of_birth"] != student.date_of_birth:
        classroom = await classroom_service.get_active_classroom(db, student.classroom_id)
        if not classroom:
            raise NotFoundError(classroom_service.CLASSROOM_NOT_FOUND)
        check_age_fits(changes["date_of_birth"], classroom)

    if "gender" in changes:
        changes["gender"] = changes["gender"].value
    for field in ("first_name", "last_name", "guardian_name"):
        if field in changes:
            changes[field] = changes[field].strip()

    for field, value in changes.items():
        setattr(student, field, value)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise DuplicateEmailError(DUPLICATE_EMAIL_MESSAGE) from e
    await db.refresh(student)
    logger.info("Student %s updated (%s)", student.id, ", ".join(sorted(changes)))
    return StudentEnvelope(student=_student_to_response(student))


async def transfer_student(
    db: AsyncSession,
    scope: CallerScope,
    student_id: UUID,
    payload: TransferRequest,
) -> StudentEnvelope:
    student = await _get_scoped_student(db, scope, student_id)

    if student.school_id == payload.to_school_id and student.classroom_id == payload.to_classroom_id:
        raise ValidationError("Student is already in this classroom")

    # school_admin may only move students within their own school
    if not scope.can_access(payload.to_school_id):
        raise NotFoundError("Target school not found")
    to_school = await school_service.get_active_school(db, payload.to_school_id)
    if not to_school:
        raise NotFoundError("Target school not found")
    to_classroom = await classroom_service.get_active_classroom(
        db, payload.to_classroom_id, school_id=to_school.id
    )
    if not to_classroom:
        raise NotFoundError("Target classroom not found")
    if to_classroom.current_enrollment >= to_classroom.capacity:
        raise CapacityError("Target classroom is at full capacity")
    check_age_fits(student.date_of_birth, to_classroom)

    from_school_id = student.school_id
    from_classroom_id = student.classroom_id

    entry = {
        "from_school_id": str(from_school_id),
        "to_school_id": str(to_school.id),
        "date": utcnow().isoformat(),
        "reason": payload.reason,
    }
    student.transfer_history = [*(student.transfer_history or []), entry]
    student.school_id = to_school.id
    student.classroom_id = to_classroom.id

    # Seat in the target first: it is the write that can legitimately be refused
    if not await classroom_service.adjust_enrollment(db, to_classroom.id, 1):
        await db.rollback()
        raise CapacityError("Target classroom is at full capacity")
    await _release_seat(db, from_classroom_id)

    try:
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Transfer of student %s failed; rolled back", student_id)
        raise
    await db.refresh(student)
    logger.info(
        "Student %s transferred from classroom %s to classroom %s",
        student.id,
        from_classroom_id,
        to_classroom.id,
    )
    return StudentEnvelope(student=_student_to_response(student), message="Student transferred successfully")


async def delete_student(db: AsyncSession, scope: CallerScope, student_id: UUID) -> StudentEnvelope:
    student = await _get_scoped_student(db, scope, student_id)
    student.deleted_at = utcnow()
    await _release_seat(db, student.classroom_id)
    await db.commit()
    await db.refresh(student)
    logger.info("Student %s soft-deleted by %s", student.id, scope.user_id)
    return StudentEnvelope(student=_student_to_response(student), message="Student deleted successfully")


async def restore_student(db: AsyncSession, scope: CallerScope, student_id: UUID) -> StudentEnvelope:
    student = await db.get(Student, student_id)
    if not student or not scope.can_access(student.school_id):
        raise NotFoundError(STUDENT_NOT_FOUND)
    if student.deleted_at is None:
        raise ValidationError("Student is not deleted")

    if not await school_service.get_active_school(db, student.school_id):
        raise ValidationError("Cannot restore: School is deleted or not found")
    classroom = await classroom_service.get_active_classroom(db, student.classroom_id, school_id=student.school_id)
    if not classroom:
        raise ValidationError("Cannot restore: Classroom is deleted or not found")

    # Capacity re-checked by the conditional increment itself, not a cached read
    if not await classroom_service.adjust_enrollment(db, classroom.id, 1):
        await db.rollback()
        raise CapacityError("Cannot restore: Classroom is at full capacity")
    student.deleted_at = None
    await db.commit()
    await db.refresh(student)
    logger.info("Student %s restored by %s", student.id, scope.user_id)
    return StudentEnvelope(student=_student_to_response(student), message="Student restored successfully")
