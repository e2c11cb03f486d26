from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.core.schemas import Pagination, reject_explicit_nulls

MIN_AGE_LIMIT = 1
MAX_AGE_LIMIT = 85


class ResourceItem(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    count: int = Field(..., ge=0)


class ClassroomCreate(BaseModel):
    school_id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    grade: str = Field("", max_length=50)
    section: str = Field("", max_length=50)
    capacity: int = Field(..., ge=1, le=500)
    min_age: int = Field(3, ge=MIN_AGE_LIMIT, le=MAX_AGE_LIMIT)
    max_age: int = Field(25, ge=MIN_AGE_LIMIT, le=MAX_AGE_LIMIT)
    resources: List[ResourceItem] = Field(default_factory=list)

    class Config:
        # current_enrollment is server-maintained and must never be accepted from clients
        extra = "forbid"
        str_strip_whitespace = True

    @model_validator(mode="after")
    def validate_age_range(self) -> "ClassroomCreate":
        if self.min_age > self.max_age:
            raise ValueError("min_age cannot be greater than max_age")
        return self


class ClassroomUpdate(BaseModel):
    """Partial update. The min/max ordering is checked against stored values in the service."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    grade: Optional[str] = Field(None, max_length=50)
    section: Optional[str] = Field(None, max_length=50)
    capacity: Optional[int] = Field(None, ge=1, le=500)
    min_age: Optional[int] = Field(None, ge=MIN_AGE_LIMIT, le=MAX_AGE_LIMIT)
    max_age: Optional[int] = Field(None, ge=MIN_AGE_LIMIT, le=MAX_AGE_LIMIT)
    resources: Optional[List[ResourceItem]] = None
    is_active: Optional[bool] = None

    class Config:
        extra = "forbid"
        str_strip_whitespace = True

    @model_validator(mode="after")
    def validate_fields(self) -> "ClassroomUpdate":
        reject_explicit_nulls(
            self, ("name", "grade", "section", "capacity", "min_age", "max_age", "resources", "is_active")
        )
        if self.min_age is not None and self.max_age is not None and self.min_age > self.max_age:
            raise ValueError("min_age cannot be greater than max_age")
        return self


class ClassroomResponse(BaseModel):
    id: UUID
    school_id: UUID
    name: str
    grade: str
    section: str
    capacity: int
    current_enrollment: int
    available_slots: int
    min_age: int
    max_age: int
    resources: List[ResourceItem]
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ClassroomEnvelope(BaseModel):
    classroom: ClassroomResponse
    message: Optional[str] = None


class ClassroomListResponse(BaseModel):
    classrooms: List[ClassroomResponse]
    pagination: Pagination
