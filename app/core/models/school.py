import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Uuid, text

from app.core.clock import utcnow
from app.db.session import Base


class School(Base):
    """
    A school (tenant boundary for classrooms, students and school admins).

    Soft delete via deleted_at; (name, address) is unique among non-deleted schools only,
    so a deleted school can be recreated and the restore path has to re-check the pair.
    """

    __tablename__ = "schools"
    __table_args__ = (
        Index(
            "uq_school_name_address_active",
            "name",
            "address",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False, index=True)
    address = Column(String(500), nullable=False, default="")
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    principal = Column(String(255), nullable=True)
    established_year = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    # Superadmin who created the school; plain reference, admins are never hard-deleted
    created_by = Column(Uuid, ForeignKey("admins.id", use_alter=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
