"""
Persistence module for enrollment, grade and attendance storage.
"""

from .database import DatabaseManager, SQLiteDatabase, PostgreSQLDatabase, DatabaseFactory, Transaction
from .repositories import CourseRepository, EnrollmentRepository

__all__ = [
    "DatabaseManager",
    "SQLiteDatabase",
    "PostgreSQLDatabase",
    "DatabaseFactory",
    "Transaction",
    "CourseRepository",
    "EnrollmentRepository",
]
