"""
Custom exceptions for the EduRecord platform.

Domain rule violations derive from ``AcademicRecordError`` and carry a stable
``error_code`` so that callers can tell failure kinds apart without parsing
messages.
"""

from typing import Optional, Any, Dict


class EduRecordException(Exception):
    """Base exception for all EduRecord-related errors."""

    default_error_code = "EDURECORD_ERROR"

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert the error to a serializable dictionary."""
        return {
            'error_code': self.error_code,
            'message': self.message,
            'details': self.details
        }


class ValidationError(EduRecordException):
    """Raised when data validation fails."""
    default_error_code = "VALIDATION_ERROR"


class AuthorizationError(EduRecordException):
    """Raised when access is denied."""
    default_error_code = "ACCESS_DENIED"


class AuthenticationError(AuthorizationError):
    """Raised when the caller's role cannot be established."""
    default_error_code = "UNAUTHENTICATED"


class ConcurrencyError(EduRecordException):
    """Raised when concurrency control fails."""
    default_error_code = "CONCURRENCY_ERROR"


class ResourceNotFoundError(EduRecordException):
    """Raised when a requested resource is not found."""
    default_error_code = "RESOURCE_NOT_FOUND"


class PersistenceError(EduRecordException):
    """Raised when persistence operations fail."""
    default_error_code = "PERSISTENCE_ERROR"


class ConfigurationError(EduRecordException):
    """Raised when configuration is invalid."""
    default_error_code = "CONFIGURATION_ERROR"


class AcademicRecordError(EduRecordException):
    """Base class for academic record rule violations."""
    default_error_code = "ACADEMIC_RECORD_ERROR"


class InvalidStateTransition(AcademicRecordError):
    """Raised when an operation is not legal for the enrollment's current status."""

    default_error_code = "INVALID_STATE_TRANSITION"

    def __init__(self, current_status: Any, operation: str, message: Optional[str] = None):
        status_value = getattr(current_status, 'value', current_status)
        super().__init__(
            message or f"Cannot {operation} an enrollment in status {status_value}",
            details={'current_status': status_value, 'operation': operation}
        )
        self.current_status = current_status
        self.operation = operation


class DuplicateEnrollment(AcademicRecordError):
    """Raised when the student already has an active enrollment in the course."""
    default_error_code = "DUPLICATE_ENROLLMENT"


class DuplicateAttendanceDate(AcademicRecordError):
    """Raised when an attendance mark already exists for the date."""
    default_error_code = "DUPLICATE_ATTENDANCE_DATE"


class CourseAtCapacity(AcademicRecordError):
    """Raised when a course cannot accept another enrollment."""
    default_error_code = "COURSE_AT_CAPACITY"


class InvalidGrade(AcademicRecordError):
    """Raised when a grade's score, maximum or weight is out of range."""
    default_error_code = "INVALID_GRADE"
