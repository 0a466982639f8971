"""
Services module containing the record engine and the application service around it.
"""

from .record_engine import AcademicRecordEngine, DEFAULT_PASSING_THRESHOLD
from .enrollment_service import EnrollmentService
from .concurrency_manager import ConcurrencyManager

__all__ = [
    "AcademicRecordEngine",
    "DEFAULT_PASSING_THRESHOLD",
    "EnrollmentService",
    "ConcurrencyManager",
]
