"""
Enrollment service: runs record engine commands against stored aggregates.

Every write follows the same shape: take the in-process lock for the resource,
load the current state, let the engine decide, then persist the result. Lock
timeouts are retried; domain rejections are logged and re-raised unchanged.
Writes return the persisted aggregate; reads return summaries.
"""

import logging
import threading
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from ..core.entities import (
    AttendanceInput, CourseCapacity, CourseStatistics, Enrollment, EnrollmentAggregate,
    EnrollmentSummary, GradeInput
)
from ..core.enums import CourseStatus, EnrollmentStatus, RecordOperation
from ..core.exceptions import EduRecordException, ResourceNotFoundError
from ..persistence.repositories import CourseRepository, EnrollmentRepository
from .concurrency_manager import ConcurrencyManager
from .record_engine import AcademicRecordEngine

logger = logging.getLogger(__name__)


class EnrollmentService:
    """Service for managing enrollments, grades and attendance."""

    def __init__(self, course_repository: CourseRepository,
                 enrollment_repository: EnrollmentRepository,
                 engine: AcademicRecordEngine,
                 concurrency_manager: ConcurrencyManager,
                 lock_retries: int = 3):
        self._course_repository = course_repository
        self._enrollment_repository = enrollment_repository
        self._engine = engine
        self._concurrency_manager = concurrency_manager
        self._lock_retries = lock_retries
        self._lock = threading.RLock()
        self._committed: Dict[str, int] = {}
        self._rejected: Dict[str, int] = {}

    @property
    def engine(self) -> AcademicRecordEngine:
        return self._engine

    # Courses

    def register_course(self, course_id: str, max_students: int = 30,
                        status: CourseStatus = CourseStatus.ACTIVE) -> CourseCapacity:
        """Register or update the capacity projection of a course."""
        course = CourseCapacity(course_id=course_id, max_students=max_students, status=status)

        def attempt():
            with self._concurrency_manager.lock(f"course_{course.course_id}", self._holder_id()):
                return self._course_repository.save(course)

        return self._run(RecordOperation.REGISTER_COURSE, attempt, course_id=course.course_id)

    def get_course_capacity(self, course_id: str) -> CourseCapacity:
        return self._course_repository.get_capacity(course_id)

    def get_course_statistics(self, course_id: str) -> CourseStatistics:
        return self._course_repository.get_statistics(course_id)

    # Enrollment lifecycle

    def enroll_student(self, student_id: str, course_id: str,
                       enrollment_date: Optional[date] = None) -> EnrollmentAggregate:
        """Enroll a student in a course.

        The engine validates against the capacity read under the course lock;
        the repository re-checks it in the inserting transaction.
        """
        def attempt():
            with self._concurrency_manager.lock(f"course_{course_id}", self._holder_id()):
                course = self._course_repository.get_capacity(course_id)
                existing = self._enrollment_repository.find_by_student_and_course(student_id, course_id)
                aggregate = self._engine.enroll(student_id, course, existing, enrollment_date)
                return self._enrollment_repository.insert_enrollment_checked(aggregate)

        return self._run(RecordOperation.ENROLL, attempt, student_id=student_id, course_id=course_id)

    def record_grade(self, enrollment_id: str, grade_input: GradeInput) -> EnrollmentAggregate:
        return self._apply(enrollment_id, RecordOperation.RECORD_GRADE,
                           lambda aggregate: self._engine.record_grade(aggregate, grade_input))

    def replace_grade(self, enrollment_id: str, grade_id: str,
                      grade_input: GradeInput) -> EnrollmentAggregate:
        return self._apply(enrollment_id, RecordOperation.REPLACE_GRADE,
                           lambda aggregate: self._engine.replace_grade(aggregate, grade_id, grade_input))

    def record_attendance(self, enrollment_id: str,
                          attendance_input: AttendanceInput) -> EnrollmentAggregate:
        return self._apply(enrollment_id, RecordOperation.RECORD_ATTENDANCE,
                           lambda aggregate: self._engine.record_attendance(aggregate, attendance_input))

    def finalize(self, enrollment_id: str, passing_threshold=None) -> EnrollmentAggregate:
        """Close the enrollment as COMPLETED or FAILED from its grades."""
        return self._apply(enrollment_id, RecordOperation.FINALIZE,
                           lambda aggregate: self._engine.finalize(aggregate, passing_threshold))

    def withdraw(self, enrollment_id: str) -> EnrollmentAggregate:
        return self._apply(enrollment_id, RecordOperation.WITHDRAW, self._engine.withdraw)

    def force_fail(self, enrollment_id: str) -> EnrollmentAggregate:
        return self._apply(enrollment_id, RecordOperation.FORCE_FAIL, self._engine.force_fail)

    def delete_enrollment(self, enrollment_id: str) -> None:
        """Hard-delete an enrollment with its grades and attendance."""
        def attempt():
            with self._concurrency_manager.lock(f"enrollment_{enrollment_id}", self._holder_id()):
                if not self._enrollment_repository.delete(enrollment_id):
                    raise self._enrollment_repository.not_found_error(enrollment_id)

        self._run(RecordOperation.DELETE_ENROLLMENT, attempt, enrollment_id=enrollment_id)

    # Queries

    def get_summary(self, enrollment_id: str) -> EnrollmentSummary:
        return self._engine.summarize(self._enrollment_repository.get_aggregate(enrollment_id))

    def get_aggregate(self, enrollment_id: str) -> EnrollmentAggregate:
        return self._enrollment_repository.get_aggregate(enrollment_id)

    def get_student_enrollments(self, student_id: str,
                                status: Optional[EnrollmentStatus] = None) -> List[EnrollmentSummary]:
        """Summaries of every enrollment the student holds, oldest first."""
        return self._summaries(self._enrollment_repository.find_by_student(student_id, status))

    def get_course_enrollments(self, course_id: str,
                               status: Optional[EnrollmentStatus] = None) -> List[EnrollmentSummary]:
        """Course roster, oldest enrollment first."""
        self._course_repository.get_capacity(course_id)
        return self._summaries(self._enrollment_repository.find_by_course(course_id, status))

    def _summaries(self, enrollments: List[Enrollment]) -> List[EnrollmentSummary]:
        summaries = []
        for enrollment in enrollments:
            aggregate = self._enrollment_repository.find_by_id(enrollment.enrollment_id)
            # Deleted between the two reads.
            if aggregate is not None:
                summaries.append(self._engine.summarize(aggregate))
        return summaries

    def get_statistics(self) -> Dict[str, Any]:
        """Get service statistics."""
        with self._lock:
            return {
                'committed': dict(self._committed),
                'rejected': dict(self._rejected),
                'passing_threshold': str(self._engine.passing_threshold),
                'concurrency': self._concurrency_manager.get_statistics()
            }

    def _apply(self, enrollment_id: str, operation: RecordOperation,
               command: Callable[[EnrollmentAggregate], EnrollmentAggregate]) -> EnrollmentAggregate:
        def attempt():
            with self._concurrency_manager.lock(f"enrollment_{enrollment_id}", self._holder_id()):
                aggregate = self._enrollment_repository.get_aggregate(enrollment_id)
                return self._enrollment_repository.save(command(aggregate))

        return self._run(operation, attempt, enrollment_id=enrollment_id)

    def _run(self, operation: RecordOperation, attempt: Callable[[], Any], **context) -> Any:
        try:
            result = self._concurrency_manager.execute_with_retry(attempt, self._lock_retries)
        except EduRecordException as e:
            self._count(self._rejected, operation)
            level = logging.INFO if isinstance(e, ResourceNotFoundError) else logging.WARNING
            logger.log(level, "%s rejected [%s]: %s %s", operation.value, e.error_code, e.message, context)
            raise

        self._count(self._committed, operation)
        logger.info("%s committed %s", operation.value, context)
        return result

    def _count(self, counters: Dict[str, int], operation: RecordOperation) -> None:
        with self._lock:
            counters[operation.value] = counters.get(operation.value, 0) + 1

    @staticmethod
    def _holder_id() -> str:
        return f"enrollment_service_{threading.get_ident()}"
