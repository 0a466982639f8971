"""
Presence computation over daily attendance marks.

PRESENT and LATE count as attended and ABSENT counts against. EXCUSED marks
are left out of the numerator and the denominator alike. An enrollment with
no counted marks is 0% attended.
"""

from collections import Counter
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, Optional

from .enums import AttendanceStatus
from .entities import AttendanceMark
from .numeric import HUNDRED, ZERO, round_percentage

PRESENT_STATUSES = frozenset({AttendanceStatus.PRESENT, AttendanceStatus.LATE})
COUNTED_STATUSES = frozenset({AttendanceStatus.PRESENT, AttendanceStatus.LATE, AttendanceStatus.ABSENT})


def counts_as_present(status: AttendanceStatus) -> bool:
    return status in PRESENT_STATUSES


def compute_presence_percentage(marks: Iterable[AttendanceMark]) -> Decimal:
    """Percentage of counted marks attended, rounded half up to two places."""
    present = 0
    counted = 0
    for mark in marks:
        if mark.status not in COUNTED_STATUSES:
            continue
        counted += 1
        if counts_as_present(mark.status):
            present += 1

    if counted == 0:
        return round_percentage(ZERO)
    return round_percentage(Decimal(present) * HUNDRED / Decimal(counted))


def attendance_breakdown(marks: Iterable[AttendanceMark]) -> Dict[AttendanceStatus, int]:
    """Number of marks per status, with every status present."""
    counts = Counter(mark.status for mark in marks)
    return {status: counts.get(status, 0) for status in AttendanceStatus}


def find_mark_for_date(marks: Iterable[AttendanceMark], attendance_date: date) -> Optional[AttendanceMark]:
    for mark in marks:
        if mark.attendance_date == attendance_date:
            return mark
    return None
