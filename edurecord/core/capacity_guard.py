"""
Course capacity checks.

``can_enroll`` is necessary but not sufficient: two concurrent enrollments can
both see the last free seat. The persistence layer re-checks the count inside
the transaction that inserts the enrollment.
"""

from .entities import CourseCapacity
from .enums import CourseStatus
from .exceptions import CourseAtCapacity


def available_spots(course: CourseCapacity) -> int:
    return max(0, course.max_students - course.active_enrollment_count)


def can_enroll(course: CourseCapacity) -> bool:
    """An active course with at least one free seat accepts enrollments."""
    return (course.status == CourseStatus.ACTIVE
            and course.active_enrollment_count < course.max_students)


def ensure_can_enroll(course: CourseCapacity) -> None:
    """Raise CourseAtCapacity when the course cannot take another student."""
    if can_enroll(course):
        return

    details = {
        'course_id': course.course_id,
        'course_status': course.status.value,
        'max_students': course.max_students,
        'active_enrollment_count': course.active_enrollment_count,
    }
    if course.status != CourseStatus.ACTIVE:
        raise CourseAtCapacity(
            f"Course {course.course_id} is {course.status.value.lower()} and not accepting enrollments",
            details=details
        )
    raise CourseAtCapacity(
        f"Course {course.course_id} is full ({course.active_enrollment_count}/{course.max_students})",
        details=details
    )
