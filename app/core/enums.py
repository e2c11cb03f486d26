from enum import Enum


class AdminRole(str, Enum):
    SUPERADMIN = "superadmin"
    SCHOOL_ADMIN = "school_admin"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
