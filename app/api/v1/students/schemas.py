from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from app.core.clock import utcnow
from app.core.enums import Gender
from app.core.schemas import PHONE_PATTERN, Pagination, blank_to_none, reject_explicit_nulls

MAX_BATCH_SIZE = 50


def _not_in_future(value: Optional[date]) -> Optional[date]:
    if value is not None and value > utcnow().date():
        raise ValueError("date_of_birth cannot be in the future")
    return value


class StudentEnrollItem(BaseModel):
    first_name: str = Field(..., min_length=2, max_length=100)
    last_name: str = Field(..., min_length=2, max_length=100)
    date_of_birth: date
    gender: Gender
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN, max_length=50)
    address: Optional[str] = Field(None, max_length=500)
    guardian_name: str = Field(..., min_length=2, max_length=255)
    guardian_phone: str = Field(..., pattern=PHONE_PATTERN, max_length=50)

    class Config:
        str_strip_whitespace = True

    @field_validator("email", "phone", "address", mode="before")
    @classmethod
    def empty_to_none(cls, value):
        return blank_to_none(value)

    @field_validator("date_of_birth")
    @classmethod
    def validate_date_of_birth(cls, value: date) -> date:
        return _not_in_future(value)


class StudentEnrollRequest(BaseModel):
    school_id: UUID
    classroom_id: UUID
    students: List[StudentEnrollItem] = Field(..., min_length=1, max_length=MAX_BATCH_SIZE)


class StudentUpdate(BaseModel):
    """Partial update. school_id/classroom_id only change through transfer."""

    first_name: Optional[str] = Field(None, min_length=2, max_length=100)
    last_name: Optional[str] = Field(None, min_length=2, max_length=100)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN, max_length=50)
    address: Optional[str] = Field(None, max_length=500)
    guardian_name: Optional[str] = Field(None, min_length=2, max_length=255)
    guardian_phone: Optional[str] = Field(None, pattern=PHONE_PATTERN, max_length=50)
    is_active: Optional[bool] = None

    class Config:
        extra = "forbid"
        str_strip_whitespace = True

    @field_validator("email", "phone", "address", mode="before")
    @classmethod
    def empty_to_none(cls, value):
        return blank_to_none(value)

    @field_validator("date_of_birth")
    @classmethod
    def validate_date_of_birth(cls, value: Optional[date]) -> Optional[date]:
        return _not_in_future(value)

    @model_validator(mode="after")
    def validate_required_fields(self) -> "StudentUpdate":
        reject_explicit_nulls(
            self,
            ("first_name", "last_name", "date_of_birth", "gender", "guardian_name", "guardian_phone", "is_active"),
        )
        return self


class TransferRequest(BaseModel):
    to_school_id: UUID
    to_classroom_id: UUID
    reason: Optional[str] = Field("", max_length=500)

    class Config:
        str_strip_whitespace = True

    @field_validator("reason", mode="before")
    @classmethod
    def null_reason_to_empty(cls, value):
        return "" if value is None else value


class TransferEntry(BaseModel):
    from_school_id: UUID
    to_school_id: UUID
    date: datetime
    reason: str = ""


class StudentResponse(BaseModel):
    id: UUID
    school_id: UUID
    classroom_id: UUID
    first_name: str
    last_name: str
    date_of_birth: date
    age: int
    gender: Gender
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    guardian_name: str
    guardian_phone: str
    enrollment_date: datetime
    is_active: bool
    transfer_history: List[TransferEntry] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class StudentEnvelope(BaseModel):
    student: StudentResponse
    message: Optional[str] = None


class EnrollFailure(BaseModel):
    index: int
    error: str


class EnrollResponse(BaseModel):
    students: List[StudentResponse]
    enrolled: int
    failed: int
    errors: Optional[List[EnrollFailure]] = None


class StudentListResponse(BaseModel):
    students: List[StudentResponse]
    pagination: Pagination
