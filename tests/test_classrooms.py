from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.classrooms import service
from app.api.v1.classrooms.schemas import ClassroomCreate, ClassroomUpdate
from app.auth.security import TokenIssuer
from app.core.clock import utcnow
from app.core.enums import AdminRole
from app.core.exceptions import (
    CapacityError,
    ConflictError,
    HasActiveChildrenError,
    NotFoundError,
    ValidationError,
)
from app.core.models import Student
from app.core.schemas import PageParams

from helpers import auth_headers, short_token_for, years_ago


def _seat_student(school_id, classroom_id, first_name: str = "Lisa") -> Student:
    return Student(
        school_id=school_id,
        classroom_id=classroom_id,
        first_name=first_name,
        last_name="Simpson",
        date_of_birth=years_ago(8),
        gender="female",
        guardian_name="Marge",
        guardian_phone="555-0101",
        transfer_history=[],
    )


async def test_create_classroom(db_session: AsyncSession, superadmin_scope, make_school) -> None:
    school = await make_school()
    result = await service.create_classroom(
        db_session,
        superadmin_scope,
        ClassroomCreate(
            school_id=school.id,
            name="Room 101",
            grade="2",
            section="B",
            capacity=25,
            min_age=6,
            max_age=9,
            resources=[{"name": "Projector", "count": 1}],
        ),
    )
    classroom = result.classroom
    assert classroom.current_enrollment == 0
    assert classroom.available_slots == 25
    assert classroom.resources[0].name == "Projector"


async def test_create_defaults_age_range() -> None:
    payload = ClassroomCreate(school_id=uuid4(), name="Room", capacity=10)
    assert (payload.min_age, payload.max_age) == (3, 25)


async def test_create_rejects_inverted_age_range() -> None:
    with pytest.raises(ValueError):
        ClassroomCreate(school_id=uuid4(), name="Room", capacity=10, min_age=12, max_age=6)


async def test_create_rejects_client_enrollment_counter() -> None:
    with pytest.raises(ValueError):
        ClassroomCreate(school_id=uuid4(), name="Room", capacity=10, current_enrollment=3)


async def test_create_duplicate_slot(db_session: AsyncSession, superadmin_scope, make_school) -> None:
    school = await make_school()
    payload = ClassroomCreate(school_id=school.id, name="Room", grade="1", section="A", capacity=10)
    await service.create_classroom(db_session, superadmin_scope, payload)
    with pytest.raises(ConflictError):
        await service.create_classroom(db_session, superadmin_scope, payload)

    # Same name and grade in another section is fine
    other = payload.model_copy(update={"section": "B"})
    assert (await service.create_classroom(db_session, superadmin_scope, other)).classroom.section == "B"


async def test_create_in_missing_or_foreign_school(
    db_session: AsyncSession, superadmin_scope, school_admin_scope, make_school
) -> None:
    with pytest.raises(NotFoundError):
        await service.create_classroom(
            db_session, superadmin_scope, ClassroomCreate(school_id=uuid4(), name="Room", capacity=10)
        )

    own = await make_school(name="Own")
    other = await make_school(name="Other")
    with pytest.raises(NotFoundError):
        await service.create_classroom(
            db_session,
            school_admin_scope(own.id),
            ClassroomCreate(school_id=other.id, name="Room", capacity=10),
        )


async def test_reduce_capacity_below_enrollment(
    db_session: AsyncSession, superadmin_scope, make_school, make_classroom
) -> None:
    school = await make_school()
    classroom = await make_classroom(school.id, capacity=10, current_enrollment=4)

    with pytest.raises(CapacityError) as exc:
        await service.update_classroom(db_session, superadmin_scope, classroom.id, ClassroomUpdate(capacity=3))
    assert exc.value.message == "Cannot reduce capacity below current enrollment (4)"

    result = await service.update_classroom(db_session, superadmin_scope, classroom.id, ClassroomUpdate(capacity=4))
    assert result.classroom.capacity == 4
    assert result.classroom.available_slots == 0


async def test_update_age_range_against_stored_values(
    db_session: AsyncSession, superadmin_scope, make_school, make_classroom
) -> None:
    school = await make_school()
    classroom = await make_classroom(school.id, min_age=5, max_age=10)
    with pytest.raises(ValidationError):
        await service.update_classroom(db_session, superadmin_scope, classroom.id, ClassroomUpdate(min_age=11))

    result = await service.update_classroom(
        db_session, superadmin_scope, classroom.id, ClassroomUpdate(name="Renamed", max_age=12)
    )
    assert result.classroom.name == "Renamed"
    assert result.classroom.max_age == 12


async def test_list_is_narrowed_for_school_admin(
    db_session: AsyncSession, superadmin_scope, school_admin_scope, make_school, make_classroom
) -> None:
    own = await make_school(name="Own")
    other = await make_school(name="Other")
    mine = await make_classroom(own.id, name="Mine")
    await make_classroom(other.id, name="Theirs")

    everything = await service.list_classrooms(db_session, superadmin_scope, PageParams())
    assert everything.pagination.total == 2

    # Asking for another school's classrooms still only yields their own
    narrowed = await service.list_classrooms(db_session, school_admin_scope(own.id), PageParams(), school_id=other.id)
    assert [c.id for c in narrowed.classrooms] == [mine.id]


async def test_foreign_classroom_is_not_found(
    db_session: AsyncSession, school_admin_scope, make_school, make_classroom
) -> None:
    own = await make_school(name="Own")
    other = await make_school(name="Other")
    theirs = await make_classroom(other.id)
    scope = school_admin_scope(own.id)
    with pytest.raises(NotFoundError):
        await service.get_classroom(db_session, scope, theirs.id)
    with pytest.raises(NotFoundError):
        await service.delete_classroom(db_session, scope, theirs.id)


async def test_delete_with_students_uses_live_count(
    db_session: AsyncSession, superadmin_scope, make_school, make_classroom
) -> None:
    school = await make_school()
    # Counter says empty, but a live student is seated
    classroom = await make_classroom(school.id, current_enrollment=0)
    db_session.add(_seat_student(school.id, classroom.id))
    await db_session.commit()

    with pytest.raises(HasActiveChildrenError) as exc:
        await service.delete_classroom(db_session, superadmin_scope, classroom.id)
    assert exc.value.message == "Cannot delete classroom with active students"


async def test_delete_and_restore_resyncs_counter(
    db_session: AsyncSession, superadmin_scope, make_school, make_classroom
) -> None:
    school = await make_school()
    classroom = await make_classroom(school.id)

    deleted = await service.delete_classroom(db_session, superadmin_scope, classroom.id)
    assert deleted.message == "Classroom deleted successfully"
    with pytest.raises(NotFoundError):
        await service.get_classroom(db_session, superadmin_scope, classroom.id)

    restored = await service.restore_classroom(db_session, superadmin_scope, classroom.id)
    assert restored.classroom.current_enrollment == 0
    assert restored.message == "Classroom restored successfully"


async def test_restore_requires_live_school(
    db_session: AsyncSession, superadmin_scope, make_school, make_classroom
) -> None:
    school = await make_school()
    classroom = await make_classroom(school.id)
    await service.delete_classroom(db_session, superadmin_scope, classroom.id)
    school.deleted_at = utcnow()
    await db_session.commit()

    with pytest.raises(ValidationError) as exc:
        await service.restore_classroom(db_session, superadmin_scope, classroom.id)
    assert exc.value.message == "Cannot restore: School is deleted or not found"


async def test_restore_conflicts_with_live_duplicate(
    db_session: AsyncSession, superadmin_scope, make_school, make_classroom
) -> None:
    school = await make_school()
    classroom = await make_classroom(school.id, name="Room")
    await service.delete_classroom(db_session, superadmin_scope, classroom.id)
    await make_classroom(school.id, name="Room")

    with pytest.raises(ConflictError):
        await service.restore_classroom(db_session, superadmin_scope, classroom.id)


async def test_update_rejects_unknown_and_null_fields() -> None:
    with pytest.raises(ValueError):
        ClassroomUpdate(current_enrollment=5)
    with pytest.raises(ValueError):
        ClassroomUpdate(capacity=None)


async def test_classroom_endpoints_over_http(
    client: AsyncClient, make_school, issuer: TokenIssuer
) -> None:
    school = await make_school()
    headers = auth_headers(short_token_for(issuer, uuid4(), AdminRole.SCHOOL_ADMIN, school.id))

    created = await client.post(
        "/api/v1/classrooms",
        json={"school_id": str(school.id), "name": "Room 7", "capacity": 2, "min_age": 5, "max_age": 8},
        headers=headers,
    )
    assert created.status_code == 201
    body = created.json()["classroom"]
    assert body["available_slots"] == 2

    inverted = await client.post(
        "/api/v1/classrooms",
        json={"school_id": str(school.id), "name": "Room 8", "capacity": 2, "min_age": 9, "max_age": 8},
        headers=headers,
    )
    assert inverted.status_code == 400
    assert "min_age cannot be greater than max_age" in inverted.json()["error"]

    listed = await client.get("/api/v1/classrooms", headers=headers)
    assert listed.status_code == 200
    assert listed.json()["pagination"]["total"] == 1


async def test_duplicate_slot_caught_by_unique_index(
    db_session: AsyncSession, superadmin_scope, make_school, make_classroom, monkeypatch
) -> None:
    school = await make_school()
    await make_classroom(school.id, name="Taken")
    other = await make_classroom(school.id, name="Free")
    school_id, other_id = school.id, other.id

    async def never_taken(db, school_id, name, grade, section, exclude_id=None):
        return False

    monkeypatch.setattr(service, "_slot_taken", never_taken)
    with pytest.raises(ConflictError) as exc:
        await service.create_classroom(
            db_session,
            superadmin_scope,
            ClassroomCreate(school_id=school_id, name="Taken", grade="1", section="A", capacity=10),
        )
    assert exc.value.message == service.DUPLICATE_CLASSROOM_MESSAGE

    with pytest.raises(ConflictError) as exc:
        await service.update_classroom(db_session, superadmin_scope, other_id, ClassroomUpdate(name="Taken"))
    assert exc.value.message == service.DUPLICATE_CLASSROOM_MESSAGE

    stored = await service.get_classroom(db_session, superadmin_scope, other_id)
    assert stored.classroom.name == "Free"


async def test_blank_classroom_name_rejected() -> None:
    with pytest.raises(ValueError):
        ClassroomCreate(school_id=uuid4(), name="   ", capacity=10)
    with pytest.raises(ValueError):
        ClassroomUpdate(name="  ")
    assert ClassroomCreate(school_id=uuid4(), name=" Room 9 ", capacity=10).name == "Room 9"
