"""Classrooms belong to exactly one school and carry the enrollment counter."""
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
    text,
)

from app.core.clock import utcnow
from app.db.session import Base


class Classroom(Base):
    """
    current_enrollment is maintained by the student service only (never client-settable).
    The check constraints mirror the invariants the conditional updates enforce.
    """

    __tablename__ = "classrooms"
    __table_args__ = (
        Index(
            "uq_classroom_school_name_grade_section_active",
            "school_id",
            "name",
            "grade",
            "section",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
        CheckConstraint("capacity >= 1", name="ck_classroom_capacity_positive"),
        CheckConstraint(
            "current_enrollment >= 0 AND current_enrollment <= capacity",
            name="ck_classroom_enrollment_within_capacity",
        ),
        CheckConstraint("min_age <= max_age", name="ck_classroom_age_range"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    grade = Column(String(50), nullable=False, default="")
    section = Column(String(50), nullable=False, default="")
    capacity = Column(Integer, nullable=False)
    current_enrollment = Column(Integer, nullable=False, default=0)
    min_age = Column(Integer, nullable=False, default=3)
    max_age = Column(Integer, nullable=False, default=25)
    # [{"name": "Projector", "count": 1}, ...]
    resources = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
