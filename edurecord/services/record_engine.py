"""
Academic record engine.

The engine is a set of pure operations from (current state, command) to a new
enrollment aggregate. It performs no I/O and keeps no state beyond the default
passing threshold it was built with; persistence and locking belong to
``EnrollmentService``.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from ..core.attendance_ledger import attendance_breakdown, compute_presence_percentage, find_mark_for_date
from ..core.capacity_guard import ensure_can_enroll
from ..core.entities import (
    AttendanceInput, CourseCapacity, Enrollment, EnrollmentAggregate,
    EnrollmentSummary, GradeInput
)
from ..core.enums import EnrollmentStatus
from ..core.exceptions import DuplicateAttendanceDate, DuplicateEnrollment, ResourceNotFoundError, ValidationError
from ..core.grade_ledger import compute_weighted_percentage, letter_grade
from ..core.numeric import HUNDRED, ZERO, to_decimal
from ..core.state_machine import EnrollmentStateMachine

DEFAULT_PASSING_THRESHOLD = Decimal("60.00")


def validate_passing_threshold(value) -> Decimal:
    threshold = to_decimal(value, "passing_threshold")
    if threshold < ZERO or threshold > HUNDRED:
        raise ValidationError("Passing threshold must be between 0 and 100",
                              details={'passing_threshold': str(threshold)})
    return threshold


class AcademicRecordEngine:
    """Applies enrollment, grading and attendance commands to aggregates."""

    def __init__(self, passing_threshold=DEFAULT_PASSING_THRESHOLD):
        self._passing_threshold = validate_passing_threshold(passing_threshold)

    @property
    def passing_threshold(self) -> Decimal:
        return self._passing_threshold

    def enroll(self, student_id: str, course: CourseCapacity,
               existing_enrollments: Iterable[Enrollment],
               enrollment_date: Optional[date] = None) -> EnrollmentAggregate:
        """Create a new ENROLLED aggregate for the student in the course.

        ``existing_enrollments`` must include every enrollment the student has
        held in the course; terminal ones are ignored so that a student can
        re-enroll after dropping, completing or failing.
        """
        for existing in existing_enrollments:
            if existing.is_same_pair(student_id, course.course_id) and existing.is_active:
                raise DuplicateEnrollment(
                    f"Student {student_id} is already enrolled in course {course.course_id}",
                    details={
                        'student_id': student_id,
                        'course_id': course.course_id,
                        'enrollment_id': existing.enrollment_id
                    }
                )

        ensure_can_enroll(course)

        enrollment = Enrollment(
            student_id=student_id,
            course_id=course.course_id,
            enrollment_date=enrollment_date or date.today(),
            status=EnrollmentStatus.ENROLLED
        )
        return EnrollmentAggregate(enrollment=enrollment)

    def record_grade(self, aggregate: EnrollmentAggregate, grade_input: GradeInput,
                     today: Optional[date] = None) -> EnrollmentAggregate:
        """Append a grade; the weighted percentage is derived, never stored."""
        EnrollmentStateMachine.ensure_grading_allowed(aggregate.status)
        grade = grade_input.to_grade(today or date.today())
        return aggregate.with_grades(aggregate.grades + (grade,))

    def replace_grade(self, aggregate: EnrollmentAggregate, grade_id: str, grade_input: GradeInput,
                      today: Optional[date] = None) -> EnrollmentAggregate:
        """Swap an existing grade for a corrected one with a new identifier."""
        EnrollmentStateMachine.ensure_grading_allowed(aggregate.status, "correct a grade for")

        if not any(grade.grade_id == grade_id for grade in aggregate.grades):
            raise ResourceNotFoundError(
                f"Grade {grade_id} not found in enrollment {aggregate.enrollment_id}",
                details={'grade_id': grade_id, 'enrollment_id': aggregate.enrollment_id}
            )

        replacement = grade_input.to_grade(today or date.today())
        grades = [replacement if grade.grade_id == grade_id else grade for grade in aggregate.grades]
        return aggregate.with_grades(grades)

    def record_attendance(self, aggregate: EnrollmentAggregate,
                          attendance_input: AttendanceInput) -> EnrollmentAggregate:
        """Append a daily mark; only one mark per date is allowed."""
        EnrollmentStateMachine.ensure_attendance_allowed(aggregate.status)
        mark = attendance_input.to_mark()

        existing = find_mark_for_date(aggregate.attendance, mark.attendance_date)
        if existing is not None:
            raise DuplicateAttendanceDate(
                f"Attendance for {mark.attendance_date.isoformat()} is already recorded",
                details={
                    'enrollment_id': aggregate.enrollment_id,
                    'attendance_date': mark.attendance_date.isoformat(),
                    'existing_status': existing.status.value
                }
            )
        return aggregate.with_attendance(aggregate.attendance + (mark,))

    def finalize(self, aggregate: EnrollmentAggregate, passing_threshold=None) -> EnrollmentAggregate:
        """Close an active enrollment as COMPLETED or FAILED.

        The weighted percentage decides the outcome. Without grades the
        enrollment's existing final grade is used instead; with neither the
        enrollment fails and its final grade stays unset.
        """
        EnrollmentStateMachine.ensure_active(aggregate.status, "finalize")
        threshold = (self._passing_threshold if passing_threshold is None
                     else validate_passing_threshold(passing_threshold))

        percentage = compute_weighted_percentage(aggregate.grades)
        if percentage is None:
            percentage = aggregate.enrollment.final_grade

        target = EnrollmentStateMachine.outcome_for(percentage, threshold)
        status = EnrollmentStateMachine.transition(aggregate.status, target, "finalize")
        return aggregate.with_enrollment(status=status, final_grade=percentage)

    def withdraw(self, aggregate: EnrollmentAggregate) -> EnrollmentAggregate:
        status = EnrollmentStateMachine.transition(aggregate.status, EnrollmentStatus.DROPPED, "withdraw")
        return aggregate.with_enrollment(status=status)

    def force_fail(self, aggregate: EnrollmentAggregate) -> EnrollmentAggregate:
        """Fail an active enrollment regardless of its grades."""
        status = EnrollmentStateMachine.transition(aggregate.status, EnrollmentStatus.FAILED, "fail")
        return aggregate.with_enrollment(status=status)

    def summarize(self, aggregate: EnrollmentAggregate) -> EnrollmentSummary:
        """Build the read model for an aggregate."""
        enrollment = aggregate.enrollment
        percentage = compute_weighted_percentage(aggregate.grades)
        return EnrollmentSummary(
            enrollment_id=enrollment.enrollment_id,
            student_id=enrollment.student_id,
            course_id=enrollment.course_id,
            enrollment_date=enrollment.enrollment_date,
            status=enrollment.status,
            weighted_percentage=percentage,
            letter_grade=letter_grade(percentage) if percentage is not None else None,
            presence_percentage=compute_presence_percentage(aggregate.attendance),
            final_grade=enrollment.final_grade,
            grade_count=len(aggregate.grades),
            attendance_count=len(aggregate.attendance),
            attendance_breakdown=attendance_breakdown(aggregate.attendance)
        )
