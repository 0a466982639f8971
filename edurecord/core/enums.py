"""
Enumerations and constants for the EduRecord platform.
"""

from enum import Enum

from .exceptions import ValidationError


class EnrollmentStatus(Enum):
    """Lifecycle status of an enrollment."""
    ENROLLED = "ENROLLED"
    COMPLETED = "COMPLETED"
    DROPPED = "DROPPED"
    FAILED = "FAILED"

    @classmethod
    def from_string(cls, value: str) -> "EnrollmentStatus":
        return _parse(cls, value, "enrollment status")


class AttendanceStatus(Enum):
    """Status of a single daily attendance mark."""
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    LATE = "LATE"
    EXCUSED = "EXCUSED"

    @classmethod
    def from_string(cls, value: str) -> "AttendanceStatus":
        return _parse(cls, value, "attendance status")


class CourseStatus(Enum):
    """Status of a course as seen by the capacity guard."""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    COMPLETED = "COMPLETED"

    @classmethod
    def from_string(cls, value: str) -> "CourseStatus":
        return _parse(cls, value, "course status")


class LetterGrade(Enum):
    """Letter grades derived from a percentage."""
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    F = "F"


class UserRole(Enum):
    """Caller roles supplied by the identity collaborator."""
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


class RecordOperation(Enum):
    """Operations exposed by the academic record service."""
    ENROLL = "enroll"
    RECORD_GRADE = "record_grade"
    REPLACE_GRADE = "replace_grade"
    RECORD_ATTENDANCE = "record_attendance"
    FINALIZE = "finalize"
    WITHDRAW = "withdraw"
    FORCE_FAIL = "force_fail"
    DELETE_ENROLLMENT = "delete_enrollment"
    REGISTER_COURSE = "register_course"
    READ = "read"


def _parse(enum_cls, value, label):
    if isinstance(value, enum_cls):
        return value
    if value is None:
        raise ValidationError(f"{label.capitalize()} value cannot be null")
    try:
        return enum_cls(str(value).strip().upper())
    except ValueError:
        raise ValidationError(f"Invalid {label}: {value}") from None
