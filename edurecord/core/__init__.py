"""
Core module containing the academic record domain model and its rules.
"""

from .entities import (
    AttendanceInput,
    AttendanceMark,
    CourseCapacity,
    CourseStatistics,
    Enrollment,
    EnrollmentAggregate,
    EnrollmentSummary,
    Grade,
    GradeInput,
)
from .enums import (
    AttendanceStatus,
    CourseStatus,
    EnrollmentStatus,
    LetterGrade,
    RecordOperation,
    UserRole,
)
from .exceptions import (
    AcademicRecordError,
    AuthenticationError,
    AuthorizationError,
    ConcurrencyError,
    ConfigurationError,
    CourseAtCapacity,
    DuplicateAttendanceDate,
    DuplicateEnrollment,
    EduRecordException,
    InvalidGrade,
    InvalidStateTransition,
    PersistenceError,
    ResourceNotFoundError,
    ValidationError,
)
from .interfaces import AccessControl, Repository
from .state_machine import EnrollmentStateMachine

__all__ = [
    # Entities
    "AttendanceInput",
    "AttendanceMark",
    "CourseCapacity",
    "CourseStatistics",
    "Enrollment",
    "EnrollmentAggregate",
    "EnrollmentSummary",
    "Grade",
    "GradeInput",

    # Interfaces
    "AccessControl",
    "Repository",

    # Enums
    "AttendanceStatus",
    "CourseStatus",
    "EnrollmentStatus",
    "LetterGrade",
    "RecordOperation",
    "UserRole",

    # Exceptions
    "AcademicRecordError",
    "AuthenticationError",
    "AuthorizationError",
    "ConcurrencyError",
    "ConfigurationError",
    "CourseAtCapacity",
    "DuplicateAttendanceDate",
    "DuplicateEnrollment",
    "EduRecordException",
    "InvalidGrade",
    "InvalidStateTransition",
    "PersistenceError",
    "ResourceNotFoundError",
    "ValidationError",

    # Rules
    "EnrollmentStateMachine",
]
