from datetime import date
from decimal import Decimal

import pytest

from edurecord.core.entities import (
    AttendanceInput, CourseCapacity, Enrollment, GradeInput
)
from edurecord.core.enums import AttendanceStatus, EnrollmentStatus, LetterGrade
from edurecord.core.exceptions import (
    CourseAtCapacity, DuplicateAttendanceDate, DuplicateEnrollment, InvalidGrade,
    InvalidStateTransition, ResourceNotFoundError, ValidationError
)
from edurecord.services.record_engine import AcademicRecordEngine


@pytest.fixture(name="course")
def course_fixture():
    return CourseCapacity("CS101", max_students=30)


@pytest.fixture(name="aggregate")
def aggregate_fixture(engine, course):
    return engine.enroll("S001", course, [], enrollment_date=date(2024, 9, 1))


def _with_status(aggregate, status):
    return aggregate.with_enrollment(status=status)


# ============= ENROLL =============

def test_enroll_creates_active_enrollment(engine, course):
    aggregate = engine.enroll("S001", course, [])
    assert aggregate.status == EnrollmentStatus.ENROLLED
    assert aggregate.enrollment.student_id == "S001"
    assert aggregate.enrollment.course_id == "CS101"
    assert aggregate.enrollment.final_grade is None
    assert aggregate.grades == ()
    assert aggregate.attendance == ()


def test_enroll_twice_while_active_is_duplicate(engine, course, aggregate):
    with pytest.raises(DuplicateEnrollment) as exc_info:
        engine.enroll("S001", course, [aggregate.enrollment])
    assert exc_info.value.details['enrollment_id'] == aggregate.enrollment_id


def test_re_enroll_after_dropping(engine, course, aggregate):
    dropped = engine.withdraw(aggregate)
    again = engine.enroll("S001", course, [dropped.enrollment])
    assert again.status == EnrollmentStatus.ENROLLED
    assert again.enrollment_id != aggregate.enrollment_id


def test_duplicate_is_reported_before_capacity(engine, aggregate):
    full = CourseCapacity("CS101", max_students=1, active_enrollment_count=1)
    with pytest.raises(DuplicateEnrollment):
        engine.enroll("S001", full, [aggregate.enrollment])


def test_single_seat_course_refuses_second_student(engine):
    course = CourseCapacity("SEM401", max_students=1)
    first = engine.enroll("S001", course, [])
    assert first.status == EnrollmentStatus.ENROLLED

    occupied = CourseCapacity("SEM401", max_students=1, active_enrollment_count=1)
    with pytest.raises(CourseAtCapacity):
        engine.enroll("S002", occupied, [])


def test_other_students_enrollments_are_not_duplicates(engine, course):
    other = Enrollment("S002", "CS101")
    assert engine.enroll("S001", course, [other]).status == EnrollmentStatus.ENROLLED


# ============= GRADES =============

def test_record_grade_appends(engine, aggregate):
    updated = engine.record_grade(aggregate, GradeInput("Midterm", 85), today=date(2024, 10, 1))
    assert len(updated.grades) == 1
    assert updated.grades[0].grade_date == date(2024, 10, 1)
    assert aggregate.grades == ()


def test_two_grades_average(engine, aggregate):
    aggregate = engine.record_grade(aggregate, GradeInput("Midterm", 85, weight=1))
    aggregate = engine.record_grade(aggregate, GradeInput("Final", 95, weight=1))
    summary = engine.summarize(aggregate)
    assert summary.weighted_percentage == Decimal("90.00")
    assert summary.letter_grade == LetterGrade.A


def test_invalid_grade_is_rejected(engine, aggregate):
    with pytest.raises(InvalidGrade):
        engine.record_grade(aggregate, GradeInput("Midterm", 120))


def test_dropped_enrollment_rejects_grades(engine, aggregate):
    dropped = engine.withdraw(aggregate)
    with pytest.raises(InvalidStateTransition):
        engine.record_grade(dropped, GradeInput("Late work", 50))


@pytest.mark.parametrize("status", [EnrollmentStatus.COMPLETED, EnrollmentStatus.FAILED])
def test_closed_enrollment_accepts_grade_corrections(engine, aggregate, status):
    closed = _with_status(aggregate, status)
    assert len(engine.record_grade(closed, GradeInput("Regrade", 70)).grades) == 1


def test_replace_grade_swaps_the_grade(engine, aggregate):
    aggregate = engine.record_grade(aggregate, GradeInput("Midterm", 40))
    aggregate = engine.record_grade(aggregate, GradeInput("Final", 80))
    old_id = aggregate.grades[0].grade_id

    updated = engine.replace_grade(aggregate, old_id, GradeInput("Midterm (regraded)", 60))
    assert [grade.assignment_name for grade in updated.grades] == ["Midterm (regraded)", "Final"]
    assert updated.grades[0].grade_id != old_id
    assert engine.summarize(updated).weighted_percentage == Decimal("70.00")


def test_replace_unknown_grade(engine, aggregate):
    with pytest.raises(ResourceNotFoundError):
        engine.replace_grade(aggregate, "missing", GradeInput("Midterm", 60))


# ============= ATTENDANCE =============

def test_attendance_summary(engine, aggregate):
    for day, status in [(2, "PRESENT"), (3, "PRESENT"), (4, "ABSENT"), (5, "LATE")]:
        aggregate = engine.record_attendance(aggregate, AttendanceInput(date(2024, 9, day), status))
    summary = engine.summarize(aggregate)
    assert summary.presence_percentage == Decimal("75.00")
    assert summary.attendance_breakdown[AttendanceStatus.PRESENT] == 2
    assert summary.attendance_count == 4


def test_duplicate_attendance_date(engine, aggregate):
    aggregate = engine.record_attendance(aggregate, AttendanceInput(date(2024, 9, 2), "PRESENT"))
    with pytest.raises(DuplicateAttendanceDate) as exc_info:
        engine.record_attendance(aggregate, AttendanceInput(date(2024, 9, 2), "ABSENT"))
    assert exc_info.value.details['existing_status'] == "PRESENT"


@pytest.mark.parametrize("status", [EnrollmentStatus.COMPLETED, EnrollmentStatus.DROPPED,
                                    EnrollmentStatus.FAILED])
def test_attendance_requires_active_enrollment(engine, aggregate, status):
    with pytest.raises(InvalidStateTransition):
        engine.record_attendance(_with_status(aggregate, status),
                                 AttendanceInput(date(2024, 9, 2), "PRESENT"))


def test_invalid_attendance_status(engine, aggregate):
    with pytest.raises(ValidationError):
        engine.record_attendance(aggregate, AttendanceInput(date(2024, 9, 2), "SICK"))


# ============= FINALIZE / WITHDRAW / FAIL =============

def test_finalize_below_threshold_fails(engine, aggregate):
    aggregate = engine.record_grade(aggregate, GradeInput("Final", Decimal("59.99")))
    finalized = engine.finalize(aggregate)
    assert finalized.status == EnrollmentStatus.FAILED
    assert finalized.enrollment.final_grade == Decimal("59.99")


def test_finalize_at_threshold_completes(engine, aggregate):
    aggregate = engine.record_grade(aggregate, GradeInput("Final", Decimal("60.00")))
    finalized = engine.finalize(aggregate)
    assert finalized.status == EnrollmentStatus.COMPLETED
    assert finalized.enrollment.final_grade == Decimal("60.00")


def test_finalize_with_threshold_override(engine, aggregate):
    aggregate = engine.record_grade(aggregate, GradeInput("Final", 65))
    assert engine.finalize(aggregate, passing_threshold="70").status == EnrollmentStatus.FAILED


def test_engine_threshold_is_configurable(aggregate):
    strict = AcademicRecordEngine(passing_threshold=Decimal("75"))
    aggregate = strict.record_grade(aggregate, GradeInput("Final", 74))
    assert strict.finalize(aggregate).status == EnrollmentStatus.FAILED


@pytest.mark.parametrize("threshold", ["-1", "100.01", "abc"])
def test_invalid_threshold(threshold):
    with pytest.raises(ValidationError):
        AcademicRecordEngine(passing_threshold=threshold)


def test_finalize_without_grades_uses_existing_final_grade(engine, aggregate):
    aggregate = aggregate.with_enrollment(final_grade=Decimal("82.50"))
    finalized = engine.finalize(aggregate)
    assert finalized.status == EnrollmentStatus.COMPLETED
    assert finalized.enrollment.final_grade == Decimal("82.50")


def test_finalize_without_any_grade_fails(engine, aggregate):
    finalized = engine.finalize(aggregate)
    assert finalized.status == EnrollmentStatus.FAILED
    assert finalized.enrollment.final_grade is None


def test_finalize_twice_is_rejected(engine, aggregate):
    finalized = engine.finalize(engine.record_grade(aggregate, GradeInput("Final", 90)))
    with pytest.raises(InvalidStateTransition):
        engine.finalize(finalized)


def test_withdraw_only_from_enrolled(engine, aggregate):
    dropped = engine.withdraw(aggregate)
    assert dropped.status == EnrollmentStatus.DROPPED
    with pytest.raises(InvalidStateTransition):
        engine.withdraw(dropped)


def test_force_fail_keeps_final_grade(engine, aggregate):
    aggregate = engine.record_grade(aggregate.with_enrollment(final_grade=Decimal("72.50")),
                                    GradeInput("Final", 95))
    failed = engine.force_fail(aggregate)
    assert failed.status == EnrollmentStatus.FAILED
    assert failed.enrollment.final_grade == Decimal("72.50")
    with pytest.raises(InvalidStateTransition):
        engine.force_fail(failed)


# ============= SUMMARY =============

def test_summary_without_grades(engine, aggregate):
    summary = engine.summarize(aggregate)
    assert summary.weighted_percentage is None
    assert summary.letter_grade is None
    assert summary.presence_percentage == Decimal("0.00")
    data = summary.to_dict()
    assert data['status'] == "ENROLLED"
    assert data['attendance_breakdown'] == {"PRESENT": 0, "ABSENT": 0, "LATE": 0, "EXCUSED": 0}
