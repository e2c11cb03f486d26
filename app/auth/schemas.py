from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from app.core.enums import AdminRole
from app.core.schemas import Pagination


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    name: str = Field(..., min_length=2)
    role: AdminRole
    school_id: Optional[UUID] = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        # Only the name is trimmed; passwords are kept verbatim
        return value.strip() if isinstance(value, str) else value

    @model_validator(mode="after")
    def validate_school_binding(self) -> "RegisterRequest":
        if self.role == AdminRole.SCHOOL_ADMIN and self.school_id is None:
            raise ValueError("school_id is required for school_admin")
        if self.role == AdminRole.SUPERADMIN and self.school_id is not None:
            raise ValueError("school_id is not allowed for superadmin")
        return self


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class AdminInfo(BaseModel):
    """Password-free projection of an admin."""

    id: UUID
    email: EmailStr
    name: str
    role: AdminRole
    school_id: Optional[UUID] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AdminResponse(BaseModel):
    admin: AdminInfo


class AdminListResponse(BaseModel):
    admins: List[AdminInfo]
    pagination: Pagination


class LoginResponse(BaseModel):
    admin: AdminInfo
    long_token: str
    short_token: str


class ShortTokenResponse(BaseModel):
    short_token: str


class CallerScope(BaseModel):
    """
    Authorization boundary resolved from a verified short token.
    superadmin: unrestricted. school_admin: every read and write narrowed to school_id.
    """

    user_id: UUID
    role: AdminRole
    school_id: Optional[UUID] = None
    session_id: Optional[str] = None

    @property
    def is_superadmin(self) -> bool:
        return self.role == AdminRole.SUPERADMIN

    def can_access(self, school_id: Optional[UUID]) -> bool:
        if self.is_superadmin:
            return True
        return school_id is not None and self.school_id == school_id

    def narrow(self, school_id: Optional[UUID]) -> Optional[UUID]:
        """Scope narrowing: a school_admin's filter is always their own school."""
        if self.is_superadmin:
            return school_id
        return self.school_id
