from datetime import date, timedelta
from decimal import Decimal

from edurecord.core.attendance_ledger import (
    attendance_breakdown, compute_presence_percentage, counts_as_present, find_mark_for_date
)
from edurecord.core.entities import AttendanceMark
from edurecord.core.enums import AttendanceStatus


def _marks(*statuses):
    start = date(2024, 9, 2)
    return [AttendanceMark(start + timedelta(days=i), status) for i, status in enumerate(statuses)]


def test_late_counts_as_present():
    marks = _marks("PRESENT", "PRESENT", "ABSENT", "LATE")
    assert compute_presence_percentage(marks) == Decimal("75.00")


def test_excused_is_left_out_of_both_sides():
    marks = _marks("PRESENT", "ABSENT", "EXCUSED", "EXCUSED")
    assert compute_presence_percentage(marks) == Decimal("50.00")


def test_no_counted_marks_is_zero():
    assert compute_presence_percentage([]) == Decimal("0.00")
    assert compute_presence_percentage(_marks("EXCUSED")) == Decimal("0.00")


def test_presence_is_rounded_half_up():
    marks = _marks("PRESENT", "PRESENT", "ABSENT")
    assert compute_presence_percentage(marks) == Decimal("66.67")


def test_counts_as_present():
    assert counts_as_present(AttendanceStatus.PRESENT)
    assert counts_as_present(AttendanceStatus.LATE)
    assert not counts_as_present(AttendanceStatus.ABSENT)
    assert not counts_as_present(AttendanceStatus.EXCUSED)


def test_breakdown_lists_every_status():
    breakdown = attendance_breakdown(_marks("PRESENT", "LATE", "LATE"))
    assert breakdown == {
        AttendanceStatus.PRESENT: 1,
        AttendanceStatus.ABSENT: 0,
        AttendanceStatus.LATE: 2,
        AttendanceStatus.EXCUSED: 0,
    }


def test_find_mark_for_date():
    marks = _marks("PRESENT", "ABSENT")
    assert find_mark_for_date(marks, date(2024, 9, 3)).status == AttendanceStatus.ABSENT
    assert find_mark_for_date(marks, date(2024, 9, 4)) is None


def test_status_parsing_is_case_insensitive():
    mark = AttendanceMark("2024-09-02", "late")
    assert mark.status == AttendanceStatus.LATE
    assert mark.attendance_date == date(2024, 9, 2)
