"""
Repository pattern implementations for data access.

Repositories translate between table rows and the immutable domain values.
Decimals are stored as text in SQLite and as NUMERIC in PostgreSQL; both read
back through ``to_decimal``.
"""

import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..core.capacity_guard import available_spots, ensure_can_enroll
from ..core.entities import (
    AttendanceMark, CourseCapacity, CourseStatistics, Enrollment,
    EnrollmentAggregate, Grade, to_date
)
from ..core.enums import EnrollmentStatus
from ..core.exceptions import (
    ConcurrencyError, DuplicateAttendanceDate, DuplicateEnrollment, ResourceNotFoundError
)
from ..core.interfaces import Repository
from ..core.numeric import round_percentage, to_decimal
from .database import DatabaseManager, Transaction

logger = logging.getLogger(__name__)


def _db_decimal(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


def _py_decimal(value: Any, field_name: str) -> Optional[Decimal]:
    return None if value is None else to_decimal(value, field_name)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class BaseRepository:
    """Base repository implementation with common functionality."""

    def __init__(self, database: DatabaseManager, entity_type: str):
        self._database = database
        self._entity_type = entity_type
        self._lock = threading.RLock()

    def not_found_error(self, entity_id: str) -> ResourceNotFoundError:
        return ResourceNotFoundError(
            f"{self._entity_type.capitalize()} {entity_id} not found",
            details={'entity_type': self._entity_type, 'id': entity_id}
        )


class CourseRepository(BaseRepository, Repository[CourseCapacity]):
    """Stores course capacity projections and derives their active counts."""

    def __init__(self, database: DatabaseManager):
        super().__init__(database, "course")

    def save(self, entity: CourseCapacity) -> CourseCapacity:
        """Insert or update a course; the active count is always derived."""
        with self._lock, self._database.transaction() as tx:
            updated = tx.execute(
                "UPDATE courses SET max_students = ?, status = ?, updated_at = ? WHERE id = ?",
                (entity.max_students, entity.status.value, _now(), entity.course_id)
            )
            if not updated:
                tx.execute(
                    "INSERT INTO courses (id, max_students, status) VALUES (?, ?, ?)",
                    (entity.course_id, entity.max_students, entity.status.value)
                )
            return self.load_capacity(tx, entity.course_id)

    def find_by_id(self, entity_id: str) -> Optional[CourseCapacity]:
        """Find a course by ID with its current active-enrollment count."""
        with self._database.transaction() as tx:
            return self.load_capacity(tx, entity_id)

    def get_capacity(self, course_id: str) -> CourseCapacity:
        course = self.find_by_id(course_id)
        if course is None:
            raise self.not_found_error(course_id)
        return course

    def delete(self, entity_id: str) -> bool:
        """Repository contract only; the service never removes courses that enrollments reference."""
        with self._lock:
            return self._database.execute_update("DELETE FROM courses WHERE id = ?", (entity_id,)) > 0

    def get_statistics(self, course_id: str) -> CourseStatistics:
        """Enrollment counts per status and the average final grade."""
        with self._database.transaction() as tx:
            course = self.load_capacity(tx, course_id)
            if course is None:
                raise self.not_found_error(course_id)
            rows = tx.fetch_all(
                "SELECT status, final_grade FROM enrollments WHERE course_id = ?", (course_id,)
            )

        status_counts = {status: 0 for status in EnrollmentStatus}
        final_grades: List[Decimal] = []
        for row in rows:
            status_counts[EnrollmentStatus.from_string(row['status'])] += 1
            if row['final_grade'] is not None:
                final_grades.append(to_decimal(row['final_grade'], "final_grade"))

        average = None
        if final_grades:
            average = round_percentage(sum(final_grades) / len(final_grades))

        return CourseStatistics(
            course_id=course_id,
            status_counts=status_counts,
            average_final_grade=average,
            available_spots=available_spots(course)
        )

    def load_capacity(self, tx: Transaction, course_id: str,
                       lock_row: bool = False) -> Optional[CourseCapacity]:
        query = "SELECT id, max_students, status FROM courses WHERE id = ?"
        if lock_row:
            query += self._database.row_lock_clause
        row = tx.fetch_one(query, (course_id,))
        if row is None:
            return None

        active = tx.fetch_one(
            "SELECT COUNT(*) AS active_count FROM enrollments WHERE course_id = ? AND status = ?",
            (course_id, EnrollmentStatus.ENROLLED.value)
        )
        return CourseCapacity(
            course_id=row['id'],
            max_students=int(row['max_students']),
            active_enrollment_count=int(active['active_count']),
            status=row['status']
        )


class EnrollmentRepository(BaseRepository, Repository[EnrollmentAggregate]):
    """Loads and stores enrollment aggregates."""

    _ENROLLMENT_COLUMNS = "id, student_id, course_id, enrollment_date, status, final_grade"

    def __init__(self, database: DatabaseManager, course_repository: CourseRepository):
        super().__init__(database, "enrollment")
        self._course_repository = course_repository

    def insert_enrollment_checked(self, aggregate: EnrollmentAggregate) -> EnrollmentAggregate:
        """Insert a new enrollment after re-checking capacity in the same transaction.

        The course row is locked (PostgreSQL) or the database write lock is
        held (SQLite) while the active count is recomputed, so two requests
        cannot both take the last seat. The partial unique index rejects a
        second active enrollment for the same pair.
        """
        enrollment = aggregate.enrollment
        with self._lock, self._database.transaction() as tx:
            course = self._course_repository.load_capacity(tx, enrollment.course_id, lock_row=True)
            if course is None:
                raise self._course_repository.not_found_error(enrollment.course_id)
            ensure_can_enroll(course)

            try:
                tx.execute(
                    f"INSERT INTO enrollments ({self._ENROLLMENT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        enrollment.enrollment_id,
                        enrollment.student_id,
                        enrollment.course_id,
                        enrollment.enrollment_date.isoformat(),
                        enrollment.status.value,
                        _db_decimal(enrollment.final_grade)
                    )
                )
            except self._database.integrity_errors as e:
                raise DuplicateEnrollment(
                    f"Student {enrollment.student_id} is already enrolled in course {enrollment.course_id}",
                    details={'student_id': enrollment.student_id, 'course_id': enrollment.course_id}
                ) from e

            self._sync_children(tx, aggregate)
        return aggregate

    def save(self, entity: EnrollmentAggregate) -> EnrollmentAggregate:
        """Persist the enrollment's status and final grade plus any child changes.

        The update only applies when the stored version still matches the one
        the aggregate was loaded at, so a save built on a stale copy cannot
        drop grades or marks another writer added in between.
        """
        enrollment = entity.enrollment
        with self._lock, self._database.transaction() as tx:
            updated = tx.execute(
                "UPDATE enrollments SET status = ?, final_grade = ?, version = version + 1, updated_at = ? "
                "WHERE id = ? AND version = ?",
                (enrollment.status.value, _db_decimal(enrollment.final_grade), _now(),
                 enrollment.enrollment_id, entity.version)
            )
            if not updated:
                row = tx.fetch_one("SELECT version FROM enrollments WHERE id = ?", (enrollment.enrollment_id,))
                if row is None:
                    raise self.not_found_error(enrollment.enrollment_id)
                raise ConcurrencyError(
                    f"Enrollment {enrollment.enrollment_id} was modified concurrently",
                    details={'enrollment_id': enrollment.enrollment_id,
                             'expected_version': entity.version,
                             'stored_version': int(row['version'])}
                )
            self._sync_children(tx, entity)
        return replace(entity, version=entity.version + 1)

    def find_by_id(self, entity_id: str) -> Optional[EnrollmentAggregate]:
        """Assemble the aggregate for an enrollment."""
        with self._database.transaction() as tx:
            row = tx.fetch_one(
                f"SELECT {self._ENROLLMENT_COLUMNS}, version FROM enrollments WHERE id = ?", (entity_id,)
            )
            if row is None:
                return None

            grade_rows = tx.fetch_all(
                "SELECT id, assignment_name, score, max_score, weight, grade_date, comments "
                "FROM grades WHERE enrollment_id = ? ORDER BY grade_date, created_at",
                (entity_id,)
            )
            mark_rows = tx.fetch_all(
                "SELECT id, attendance_date, status, comments "
                "FROM attendance WHERE enrollment_id = ? ORDER BY attendance_date",
                (entity_id,)
            )

        return EnrollmentAggregate(
            enrollment=self._enrollment_from_row(row),
            grades=[self._grade_from_row(r) for r in grade_rows],
            attendance=[self._mark_from_row(r) for r in mark_rows],
            version=int(row['version'])
        )

    def get_aggregate(self, enrollment_id: str) -> EnrollmentAggregate:
        aggregate = self.find_by_id(enrollment_id)
        if aggregate is None:
            raise self.not_found_error(enrollment_id)
        return aggregate

    def find_by_student_and_course(self, student_id: str, course_id: str) -> List[Enrollment]:
        """Every enrollment the student has held in the course, oldest first."""
        return self._find_enrollments("student_id = ? AND course_id = ?", (student_id, course_id))

    def find_by_student(self, student_id: str,
                        status: Optional[EnrollmentStatus] = None) -> List[Enrollment]:
        if status is None:
            return self._find_enrollments("student_id = ?", (student_id,))
        return self._find_enrollments("student_id = ? AND status = ?", (student_id, status.value))

    def find_by_course(self, course_id: str,
                       status: Optional[EnrollmentStatus] = None) -> List[Enrollment]:
        if status is None:
            return self._find_enrollments("course_id = ?", (course_id,))
        return self._find_enrollments("course_id = ? AND status = ?", (course_id, status.value))

    def delete(self, entity_id: str) -> bool:
        """Hard-delete an enrollment and its children."""
        with self._lock, self._database.transaction() as tx:
            tx.execute("DELETE FROM grades WHERE enrollment_id = ?", (entity_id,))
            tx.execute("DELETE FROM attendance WHERE enrollment_id = ?", (entity_id,))
            return tx.execute("DELETE FROM enrollments WHERE id = ?", (entity_id,)) > 0

    def _find_enrollments(self, where: str, params: tuple) -> List[Enrollment]:
        rows = self._database.execute_query(
            f"SELECT {self._ENROLLMENT_COLUMNS} FROM enrollments WHERE {where} "
            "ORDER BY enrollment_date, created_at",
            params
        )
        return [self._enrollment_from_row(row) for row in rows]

    def _sync_children(self, tx: Transaction, aggregate: EnrollmentAggregate) -> None:
        """Insert new grades and marks and delete those no longer present.

        Children are immutable, so a row is either kept as is, added or removed.
        """
        enrollment_id = aggregate.enrollment_id

        stored_grades = {r['id'] for r in tx.fetch_all(
            "SELECT id FROM grades WHERE enrollment_id = ?", (enrollment_id,))}
        current_grades = {grade.grade_id: grade for grade in aggregate.grades}
        for grade_id in stored_grades - current_grades.keys():
            tx.execute("DELETE FROM grades WHERE id = ?", (grade_id,))
        for grade_id, grade in current_grades.items():
            if grade_id in stored_grades:
                continue
            tx.execute(
                "INSERT INTO grades (id, enrollment_id, assignment_name, score, max_score, weight, "
                "grade_date, comments) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (grade.grade_id, enrollment_id, grade.assignment_name, str(grade.score),
                 str(grade.max_score), str(grade.weight), grade.grade_date.isoformat(), grade.comments)
            )

        stored_marks = {r['id'] for r in tx.fetch_all(
            "SELECT id FROM attendance WHERE enrollment_id = ?", (enrollment_id,))}
        current_marks = {mark.mark_id: mark for mark in aggregate.attendance}
        for mark_id in stored_marks - current_marks.keys():
            tx.execute("DELETE FROM attendance WHERE id = ?", (mark_id,))
        for mark_id, mark in current_marks.items():
            if mark_id in stored_marks:
                continue
            try:
                tx.execute(
                    "INSERT INTO attendance (id, enrollment_id, attendance_date, status, comments) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (mark.mark_id, enrollment_id, mark.attendance_date.isoformat(),
                     mark.status.value, mark.comments)
                )
            except self._database.integrity_errors as e:
                raise DuplicateAttendanceDate(
                    f"Attendance for {mark.attendance_date.isoformat()} is already recorded",
                    details={'enrollment_id': enrollment_id,
                             'attendance_date': mark.attendance_date.isoformat()}
                ) from e

    @staticmethod
    def _enrollment_from_row(row: Dict[str, Any]) -> Enrollment:
        return Enrollment(
            enrollment_id=row['id'],
            student_id=row['student_id'],
            course_id=row['course_id'],
            enrollment_date=to_date(row['enrollment_date'], "enrollment_date"),
            status=row['status'],
            final_grade=_py_decimal(row['final_grade'], "final_grade")
        )

    @staticmethod
    def _grade_from_row(row: Dict[str, Any]) -> Grade:
        return Grade(
            grade_id=row['id'],
            assignment_name=row['assignment_name'],
            score=row['score'],
            max_score=row['max_score'],
            weight=row['weight'],
            grade_date=row['grade_date'],
            comments=row['comments']
        )

    @staticmethod
    def _mark_from_row(row: Dict[str, Any]) -> AttendanceMark:
        return AttendanceMark(
            mark_id=row['id'],
            attendance_date=row['attendance_date'],
            status=row['status'],
            comments=row['comments']
        )
