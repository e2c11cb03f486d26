from typing import Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ServiceError):
    """Malformed or missing input that passed schema validation but not business rules."""

    status_code = status.HTTP_400_BAD_REQUEST


class InvalidReferenceError(ValidationError):
    """A foreign id in the payload does not point at a live record."""


class AgeRangeError(ValidationError):
    """Student age outside the classroom's [min_age, max_age] window."""


class CapacityError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(ServiceError):
    """Record absent, soft-deleted, or outside the caller's school."""

    status_code = status.HTTP_404_NOT_FOUND


class UnauthorizedError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT


class DuplicateEmailError(ConflictError):
    pass


class HasActiveChildrenError(ConflictError):
    pass


class InvalidCredentialsError(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)
