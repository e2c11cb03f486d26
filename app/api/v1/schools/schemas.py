from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from app.core.clock import utcnow
from app.core.schemas import PHONE_PATTERN, Pagination, blank_to_none, reject_explicit_nulls


def _check_established_year(value: Optional[int]) -> Optional[int]:
    if value is not None and not 1800 <= value <= utcnow().year:
        raise ValueError(f"established_year must be between 1800 and {utcnow().year}")
    return value


class SchoolCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    address: str = Field("", max_length=500)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN, max_length=50)
    email: Optional[EmailStr] = None
    principal: Optional[str] = Field(None, max_length=255)
    established_year: Optional[int] = None

    class Config:
        str_strip_whitespace = True

    @field_validator("phone", "email", "principal", mode="before")
    @classmethod
    def empty_to_none(cls, value):
        return blank_to_none(value)

    @field_validator("established_year")
    @classmethod
    def validate_established_year(cls, value: Optional[int]) -> Optional[int]:
        return _check_established_year(value)


class SchoolUpdate(BaseModel):
    """Partial update: omitted fields are untouched; phone/email/principal/established_year may be cleared with null."""

    name: Optional[str] = Field(None, min_length=2, max_length=255)
    address: Optional[str] = Field(None, max_length=500)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN, max_length=50)
    email: Optional[EmailStr] = None
    principal: Optional[str] = Field(None, max_length=255)
    established_year: Optional[int] = None
    is_active: Optional[bool] = None

    class Config:
        str_strip_whitespace = True

    @field_validator("phone", "email", "principal", mode="before")
    @classmethod
    def empty_to_none(cls, value):
        return blank_to_none(value)

    @field_validator("established_year")
    @classmethod
    def validate_established_year(cls, value: Optional[int]) -> Optional[int]:
        return _check_established_year(value)

    @model_validator(mode="after")
    def validate_required_fields(self) -> "SchoolUpdate":
        reject_explicit_nulls(self, ("name", "address", "is_active"))
        return self


class SchoolResponse(BaseModel):
    id: UUID
    name: str
    address: str
    phone: Optional[str] = None
    email: Optional[str] = None
    principal: Optional[str] = None
    established_year: Optional[int] = None
    is_active: bool
    created_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SchoolEnvelope(BaseModel):
    school: SchoolResponse
    message: Optional[str] = None


class SchoolListResponse(BaseModel):
    schools: List[SchoolResponse]
    pagination: Pagination
