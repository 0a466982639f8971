import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal

import pytest

from edurecord.core.entities import AttendanceInput, Grade, GradeInput
from edurecord.core.enums import EnrollmentStatus
from edurecord.core.exceptions import (
    AcademicRecordError, CourseAtCapacity, DuplicateEnrollment, InvalidStateTransition,
    ResourceNotFoundError
)


@pytest.fixture(name="enrollment")
def enrollment_fixture(service):
    service.register_course("CS101", max_students=30)
    return service.enroll_student("S001", "CS101", date(2024, 9, 1))


def test_full_lifecycle(service, enrollment):
    enrollment_id = enrollment.enrollment_id
    service.record_grade(enrollment_id, GradeInput("Midterm", 85))
    service.record_grade(enrollment_id, GradeInput("Final", 95))
    for day, status in [(2, "PRESENT"), (3, "PRESENT"), (4, "ABSENT"), (5, "LATE")]:
        service.record_attendance(enrollment_id, AttendanceInput(date(2024, 9, day), status))

    finalized = service.finalize(enrollment_id)
    assert finalized.status == EnrollmentStatus.COMPLETED

    summary = service.get_summary(enrollment_id)
    assert summary.final_grade == Decimal("90.00")
    assert summary.presence_percentage == Decimal("75.00")
    assert summary.grade_count == 2
    assert summary.attendance_count == 4


def test_enroll_requires_registered_course(service):
    with pytest.raises(ResourceNotFoundError):
        service.enroll_student("S001", "missing")


def test_duplicate_and_re_enroll(service, enrollment):
    with pytest.raises(DuplicateEnrollment):
        service.enroll_student("S001", "CS101")

    service.withdraw(enrollment.enrollment_id)
    again = service.enroll_student("S001", "CS101")
    assert again.status == EnrollmentStatus.ENROLLED
    assert len(service.get_student_enrollments("S001")) == 2
    assert len(service.get_student_enrollments("S001", EnrollmentStatus.DROPPED)) == 1


def test_dropped_enrollment_rejects_records(service, enrollment):
    service.withdraw(enrollment.enrollment_id)
    with pytest.raises(InvalidStateTransition):
        service.record_grade(enrollment.enrollment_id, GradeInput("Quiz", 10))
    with pytest.raises(InvalidStateTransition):
        service.record_attendance(enrollment.enrollment_id, AttendanceInput(date(2024, 9, 2), "PRESENT"))


def test_rejected_command_leaves_state_unchanged(service, enrollment):
    service.record_grade(enrollment.enrollment_id, GradeInput("Midterm", 50))
    with pytest.raises(AcademicRecordError):
        service.record_grade(enrollment.enrollment_id, GradeInput("Bad", 200))
    assert service.get_summary(enrollment.enrollment_id).grade_count == 1


def test_replace_grade(service, enrollment):
    aggregate = service.record_grade(enrollment.enrollment_id, GradeInput("Midterm", 40))
    grade_id = aggregate.grades[0].grade_id
    service.replace_grade(enrollment.enrollment_id, grade_id, GradeInput("Midterm", 65))
    assert service.get_summary(enrollment.enrollment_id).weighted_percentage == Decimal("65.00")


def test_interleaved_write_is_retried_on_fresh_state(service, enrollment, enrollment_repository, monkeypatch):
    load_aggregate = enrollment_repository.get_aggregate
    interleaved = []

    def load_then_interleave(enrollment_id):
        aggregate = load_aggregate(enrollment_id)
        if not interleaved:
            # Another writer commits between this load and the save
            interleaved.append(enrollment_id)
            enrollment_repository.save(aggregate.with_grades(aggregate.grades + (Grade("Midterm", 80),)))
        return aggregate

    monkeypatch.setattr(enrollment_repository, "get_aggregate", load_then_interleave)
    service.record_grade(enrollment.enrollment_id, GradeInput("Final", 90))

    stored = load_aggregate(enrollment.enrollment_id)
    assert sorted(grade.assignment_name for grade in stored.grades) == ["Final", "Midterm"]
    assert service.get_statistics()['concurrency']['retries'] == 1


def test_force_fail_and_delete(service, enrollment):
    failed = service.force_fail(enrollment.enrollment_id)
    assert failed.status == EnrollmentStatus.FAILED

    service.delete_enrollment(enrollment.enrollment_id)
    with pytest.raises(ResourceNotFoundError):
        service.get_summary(enrollment.enrollment_id)
    with pytest.raises(ResourceNotFoundError):
        service.delete_enrollment(enrollment.enrollment_id)


def test_capacity_frees_up_after_withdrawal(service):
    service.register_course("SEM401", max_students=1)
    first = service.enroll_student("S001", "SEM401")
    with pytest.raises(CourseAtCapacity):
        service.enroll_student("S002", "SEM401")

    service.withdraw(first.enrollment_id)
    assert service.enroll_student("S002", "SEM401").status == EnrollmentStatus.ENROLLED


def test_course_roster(service, enrollment):
    second = service.enroll_student("S002", "CS101", date(2024, 9, 2))
    service.withdraw(enrollment.enrollment_id)

    roster = service.get_course_enrollments("CS101")
    assert [summary.student_id for summary in roster] == ["S001", "S002"]
    active = service.get_course_enrollments("CS101", EnrollmentStatus.ENROLLED)
    assert [summary.enrollment_id for summary in active] == [second.enrollment_id]

    with pytest.raises(ResourceNotFoundError):
        service.get_course_enrollments("NOPE")


def test_concurrent_enrollments_never_exceed_capacity(service):
    service.register_course("SEM401", max_students=3)

    def attempt(index):
        try:
            service.enroll_student(f"S{index:03d}", "SEM401")
            return True
        except CourseAtCapacity:
            return False

    with ThreadPoolExecutor(max_workers=6) as executor:
        results = list(executor.map(attempt, range(12)))

    assert results.count(True) == 3
    assert service.get_course_capacity("SEM401").active_enrollment_count == 3


def test_statistics_and_logging(service, enrollment, caplog):
    with caplog.at_level(logging.INFO, logger="edurecord"):
        service.withdraw(enrollment.enrollment_id)
        with pytest.raises(InvalidStateTransition):
            service.withdraw(enrollment.enrollment_id)

    assert any("INVALID_STATE_TRANSITION" in record.getMessage()
               for record in caplog.records if record.levelno == logging.WARNING)

    stats = service.get_statistics()
    assert stats['committed']['withdraw'] == 1
    assert stats['rejected']['withdraw'] == 1
    assert stats['committed']['enroll'] == 1
    assert stats['passing_threshold'] == "60.00"
