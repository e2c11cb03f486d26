import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, Uuid

from app.core.clock import utcnow
from app.db.session import Base


class Admin(Base):
    """Platform operator: superadmin (unscoped) or school_admin bound to one school."""

    __tablename__ = "admins"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(Text, nullable=False)
    # superadmin | school_admin
    role = Column(String(20), nullable=False)
    # Required iff role == school_admin
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=True)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
