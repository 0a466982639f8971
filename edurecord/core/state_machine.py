"""
Enrollment lifecycle rules.

``ENROLLED`` is the only non-terminal status. From it an enrollment may be
completed, failed or dropped; nothing leaves ``COMPLETED``, ``DROPPED`` or
``FAILED``.

Grading stays open after an enrollment is completed or failed so that grades
can be corrected retroactively. Dropped enrollments accept no grades.
"""

from decimal import Decimal
from typing import Dict, FrozenSet, Optional

from .enums import EnrollmentStatus
from .exceptions import InvalidStateTransition
from .grade_ledger import is_passing

_TRANSITIONS: Dict[EnrollmentStatus, FrozenSet[EnrollmentStatus]] = {
    EnrollmentStatus.ENROLLED: frozenset({
        EnrollmentStatus.COMPLETED,
        EnrollmentStatus.FAILED,
        EnrollmentStatus.DROPPED,
    }),
    EnrollmentStatus.COMPLETED: frozenset(),
    EnrollmentStatus.DROPPED: frozenset(),
    EnrollmentStatus.FAILED: frozenset(),
}

RETROACTIVE_GRADING_STATUSES: FrozenSet[EnrollmentStatus] = frozenset({
    EnrollmentStatus.ENROLLED,
    EnrollmentStatus.COMPLETED,
    EnrollmentStatus.FAILED,
})


class EnrollmentStateMachine:
    """Guards and transitions for the enrollment lifecycle."""

    @staticmethod
    def is_active(status: EnrollmentStatus) -> bool:
        return status == EnrollmentStatus.ENROLLED

    @staticmethod
    def is_terminal(status: EnrollmentStatus) -> bool:
        return not _TRANSITIONS[status]

    @staticmethod
    def allows_grading(status: EnrollmentStatus) -> bool:
        """Grades may be recorded while enrolled and after completion or failure."""
        return status in RETROACTIVE_GRADING_STATUSES

    @staticmethod
    def allows_attendance(status: EnrollmentStatus) -> bool:
        return status == EnrollmentStatus.ENROLLED

    @staticmethod
    def can_transition(current: EnrollmentStatus, target: EnrollmentStatus) -> bool:
        return target in _TRANSITIONS[current]

    @classmethod
    def transition(cls, current: EnrollmentStatus, target: EnrollmentStatus,
                   operation: str) -> EnrollmentStatus:
        """Return the target status, or raise if the move is illegal."""
        if not cls.can_transition(current, target):
            raise InvalidStateTransition(current, operation)
        return target

    @classmethod
    def ensure_grading_allowed(cls, status: EnrollmentStatus, operation: str = "record a grade for") -> None:
        if not cls.allows_grading(status):
            raise InvalidStateTransition(status, operation)

    @classmethod
    def ensure_attendance_allowed(cls, status: EnrollmentStatus,
                                  operation: str = "record attendance for") -> None:
        if not cls.allows_attendance(status):
            raise InvalidStateTransition(status, operation)

    @classmethod
    def ensure_active(cls, status: EnrollmentStatus, operation: str) -> None:
        if not cls.is_active(status):
            raise InvalidStateTransition(status, operation)

    @staticmethod
    def outcome_for(percentage: Optional[Decimal], passing_threshold: Decimal) -> EnrollmentStatus:
        """Terminal status reached by finalizing with the given figure."""
        if is_passing(percentage, passing_threshold):
            return EnrollmentStatus.COMPLETED
        return EnrollmentStatus.FAILED
