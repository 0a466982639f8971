import pytest

from edurecord.core.capacity_guard import available_spots, can_enroll, ensure_can_enroll
from edurecord.core.entities import CourseCapacity
from edurecord.core.enums import CourseStatus
from edurecord.core.exceptions import CourseAtCapacity, ValidationError


def test_free_seat_allows_enrollment():
    course = CourseCapacity("CS101", max_students=2, active_enrollment_count=1)
    assert can_enroll(course)
    assert available_spots(course) == 1
    ensure_can_enroll(course)


def test_full_course_is_refused():
    course = CourseCapacity("CS101", max_students=1, active_enrollment_count=1)
    assert not can_enroll(course)
    assert available_spots(course) == 0
    with pytest.raises(CourseAtCapacity) as exc_info:
        ensure_can_enroll(course)
    assert exc_info.value.details['max_students'] == 1


def test_overfull_course_reports_no_spots():
    course = CourseCapacity("CS101", max_students=2, active_enrollment_count=5)
    assert available_spots(course) == 0


@pytest.mark.parametrize("status", [CourseStatus.INACTIVE, CourseStatus.COMPLETED])
def test_inactive_course_is_refused(status):
    course = CourseCapacity("CS101", max_students=30, status=status)
    assert not can_enroll(course)
    with pytest.raises(CourseAtCapacity) as exc_info:
        ensure_can_enroll(course)
    assert exc_info.value.details['course_status'] == status.value


@pytest.mark.parametrize("max_students", [0, -1, True, "10"])
def test_invalid_capacity(max_students):
    with pytest.raises(ValidationError):
        CourseCapacity("CS101", max_students=max_students)


@pytest.mark.parametrize("active_count", [-1, 1.5, "3", False])
def test_invalid_active_count(active_count):
    with pytest.raises(ValidationError):
        CourseCapacity("CS101", max_students=10, active_enrollment_count=active_count)
