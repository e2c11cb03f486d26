from app.core.models.school import School
from app.core.models.classroom import Classroom
from app.core.models.student import Student

__all__ = [
    "Classroom",
    "School",
    "Student",
]
