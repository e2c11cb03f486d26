import uuid

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, ForeignKey, String, Uuid

from app.core.clock import utcnow
from app.db.session import Base


class Student(Base):
    """
    Student enrolled in one school and one classroom at a time.

    transfer_history is an append-only list of
    {"from_school_id", "to_school_id", "date", "reason"}; always reassign a new list
    so the JSON column is flagged dirty.
    """

    __tablename__ = "students"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=False, index=True)
    classroom_id = Column(Uuid, ForeignKey("classrooms.id"), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(String(10), nullable=False)
    # Globally unique when present (NULLs do not collide)
    email = Column(String(255), nullable=True, unique=True)
    phone = Column(String(50), nullable=True)
    address = Column(String(500), nullable=True)
    guardian_name = Column(String(255), nullable=False)
    guardian_phone = Column(String(50), nullable=False)
    enrollment_date = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    transfer_history = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
