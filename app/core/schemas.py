import math

from pydantic import BaseModel, Field


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=math.ceil(total / limit) if limit else 0)


class PageParams(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


PHONE_PATTERN = r"^[0-9+\-\s()]+$"


def blank_to_none(value):
    """Optional string inputs accept "" as "not provided"."""
    if isinstance(value, str) and not value.strip():
        return None
    return value


def reject_explicit_nulls(model: BaseModel, fields) -> None:
    """For PATCH payloads: an omitted field is left alone, an explicit null is only valid for clearable fields."""
    for name in fields:
        if name in model.model_fields_set and getattr(model, name) is None:
            raise ValueError(f"{name} cannot be null")
