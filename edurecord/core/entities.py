"""
Core value objects for the EduRecord platform.

Everything here is an immutable dataclass keyed by identifiers. An enrollment
aggregate holds its grades and attendance marks as tuples; there are no
references back from a child to its enrollment or from an enrollment to its
course. Commands produce new aggregates with ``dataclasses.replace``.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from .enums import AttendanceStatus, CourseStatus, EnrollmentStatus, LetterGrade
from .exceptions import InvalidGrade, ValidationError
from .numeric import HUNDRED, ZERO, round_percentage, to_decimal

MAX_ASSIGNMENT_NAME_LENGTH = 255
MAX_GRADE_WEIGHT = Decimal("100")


def _new_id() -> str:
    return str(uuid.uuid4())


def to_date(value: Any, field_name: str) -> date:
    """Coerce a date, datetime or ISO string to a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise ValidationError(f"{field_name} must be an ISO date, got {value!r}",
                          details={'field': field_name})


def _require_identifier(value: Any, field_name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required", details={'field': field_name})
    return str(value).strip()


def validate_grade_values(assignment_name, score, max_score, weight) -> Tuple[str, Decimal, Decimal, Decimal]:
    """Check and normalize grade values, raising InvalidGrade on the first violation."""
    name = str(assignment_name or "").strip()
    if not name:
        raise InvalidGrade("Assignment name is required", details={'field': 'assignment_name'})
    if len(name) > MAX_ASSIGNMENT_NAME_LENGTH:
        raise InvalidGrade(
            f"Assignment name must not exceed {MAX_ASSIGNMENT_NAME_LENGTH} characters",
            details={'field': 'assignment_name'}
        )

    score = to_decimal(score, "score", InvalidGrade)
    max_score = to_decimal(max_score, "max_score", InvalidGrade)
    weight = to_decimal(weight, "weight", InvalidGrade)

    if score < ZERO:
        raise InvalidGrade("Score must be at least 0", details={'score': str(score)})
    if max_score <= ZERO:
        raise InvalidGrade("Max score must be greater than 0", details={'max_score': str(max_score)})
    if weight <= ZERO or weight > MAX_GRADE_WEIGHT:
        raise InvalidGrade(
            f"Weight must be greater than 0 and at most {MAX_GRADE_WEIGHT}",
            details={'weight': str(weight)}
        )
    if score > max_score:
        raise InvalidGrade(
            f"Score {score} exceeds max score {max_score}",
            details={'score': str(score), 'max_score': str(max_score)}
        )
    return name, score, max_score, weight


@dataclass(frozen=True)
class Grade:
    """One scored assignment. Invalid values raise InvalidGrade."""

    assignment_name: str
    score: Decimal
    max_score: Decimal = Decimal("100")
    weight: Decimal = Decimal("1")
    grade_date: date = field(default_factory=date.today)
    comments: Optional[str] = None
    grade_id: str = field(default_factory=_new_id)

    def __post_init__(self):
        name, score, max_score, weight = validate_grade_values(
            self.assignment_name, self.score, self.max_score, self.weight
        )
        object.__setattr__(self, 'assignment_name', name)
        object.__setattr__(self, 'score', score)
        object.__setattr__(self, 'max_score', max_score)
        object.__setattr__(self, 'weight', weight)
        object.__setattr__(self, 'grade_date', to_date(self.grade_date, "grade_date"))

    def percentage(self) -> Decimal:
        """Score as a percentage of the maximum, rounded to two places."""
        return round_percentage(self.score * HUNDRED / self.max_score)

    def letter_grade(self) -> LetterGrade:
        from .grade_ledger import letter_grade
        return letter_grade(self.percentage())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'grade_id': self.grade_id,
            'assignment_name': self.assignment_name,
            'score': self.score,
            'max_score': self.max_score,
            'weight': self.weight,
            'percentage': self.percentage(),
            'letter_grade': self.letter_grade().value,
            'grade_date': self.grade_date,
            'comments': self.comments
        }


@dataclass(frozen=True)
class AttendanceMark:
    """One daily attendance record."""

    attendance_date: date
    status: AttendanceStatus
    comments: Optional[str] = None
    mark_id: str = field(default_factory=_new_id)

    def __post_init__(self):
        object.__setattr__(self, 'attendance_date', to_date(self.attendance_date, "attendance_date"))
        object.__setattr__(self, 'status', AttendanceStatus.from_string(self.status))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'mark_id': self.mark_id,
            'attendance_date': self.attendance_date,
            'status': self.status.value,
            'comments': self.comments
        }


@dataclass(frozen=True)
class Enrollment:
    """One student's registration in one course."""

    student_id: str
    course_id: str
    enrollment_date: date = field(default_factory=date.today)
    status: EnrollmentStatus = EnrollmentStatus.ENROLLED
    final_grade: Optional[Decimal] = None
    enrollment_id: str = field(default_factory=_new_id)

    def __post_init__(self):
        object.__setattr__(self, 'student_id', _require_identifier(self.student_id, "student_id"))
        object.__setattr__(self, 'course_id', _require_identifier(self.course_id, "course_id"))
        object.__setattr__(self, 'enrollment_date', to_date(self.enrollment_date, "enrollment_date"))
        object.__setattr__(self, 'status', EnrollmentStatus.from_string(self.status))

        if self.final_grade is not None:
            final_grade = to_decimal(self.final_grade, "final_grade")
            if final_grade < ZERO or final_grade > HUNDRED:
                raise ValidationError("Final grade must be between 0.00 and 100.00",
                                      details={'final_grade': str(final_grade)})
            object.__setattr__(self, 'final_grade', final_grade)

    @property
    def is_active(self) -> bool:
        return self.status == EnrollmentStatus.ENROLLED

    def is_same_pair(self, student_id: str, course_id: str) -> bool:
        """Check whether this enrollment links the given student and course."""
        return self.student_id == student_id and self.course_id == course_id


@dataclass(frozen=True)
class CourseCapacity:
    """Capacity-relevant projection of a course."""

    course_id: str
    max_students: int
    active_enrollment_count: int = 0
    status: CourseStatus = CourseStatus.ACTIVE

    def __post_init__(self):
        object.__setattr__(self, 'course_id', _require_identifier(self.course_id, "course_id"))
        object.__setattr__(self, 'status', CourseStatus.from_string(self.status))
        if isinstance(self.max_students, bool) or not isinstance(self.max_students, int):
            raise ValidationError("Max students must be an integer")
        if self.max_students < 1:
            raise ValidationError("Max students must be at least 1")
        if isinstance(self.active_enrollment_count, bool) or not isinstance(self.active_enrollment_count, int):
            raise ValidationError("Active enrollment count must be an integer")
        if self.active_enrollment_count < 0:
            raise ValidationError("Active enrollment count cannot be negative")


@dataclass(frozen=True)
class EnrollmentAggregate:
    """An enrollment together with its grades and attendance marks.

    ``version`` is the stored revision the aggregate was loaded at; saving a
    stale copy is refused.
    """

    enrollment: Enrollment
    grades: Tuple[Grade, ...] = ()
    attendance: Tuple[AttendanceMark, ...] = ()
    version: int = 1

    def __post_init__(self):
        object.__setattr__(self, 'grades', tuple(self.grades))
        object.__setattr__(self, 'attendance', tuple(self.attendance))

    @property
    def enrollment_id(self) -> str:
        return self.enrollment.enrollment_id

    @property
    def status(self) -> EnrollmentStatus:
        return self.enrollment.status

    def with_enrollment(self, **changes) -> 'EnrollmentAggregate':
        """Return a copy with the enrollment fields replaced."""
        return replace(self, enrollment=replace(self.enrollment, **changes))

    def with_grades(self, grades) -> 'EnrollmentAggregate':
        return replace(self, grades=tuple(grades))

    def with_attendance(self, attendance) -> 'EnrollmentAggregate':
        return replace(self, attendance=tuple(attendance))


@dataclass(frozen=True)
class GradeInput:
    """Caller-supplied values for a new grade."""

    assignment_name: str
    score: Any
    max_score: Any = Decimal("100")
    weight: Any = Decimal("1")
    grade_date: Optional[date] = None
    comments: Optional[str] = None

    def to_grade(self, default_date: date) -> Grade:
        """Build a validated Grade, dating it today when no date was given."""
        return Grade(
            assignment_name=self.assignment_name,
            score=self.score,
            max_score=self.max_score,
            weight=self.weight,
            grade_date=self.grade_date or default_date,
            comments=self.comments
        )


@dataclass(frozen=True)
class AttendanceInput:
    """Caller-supplied values for a new attendance mark."""

    attendance_date: date
    status: Any
    comments: Optional[str] = None

    def to_mark(self) -> AttendanceMark:
        return AttendanceMark(
            attendance_date=self.attendance_date,
            status=self.status,
            comments=self.comments
        )


@dataclass(frozen=True)
class EnrollmentSummary:
    """Read model derived from an enrollment aggregate."""

    enrollment_id: str
    student_id: str
    course_id: str
    enrollment_date: date
    status: EnrollmentStatus
    weighted_percentage: Optional[Decimal]
    letter_grade: Optional[LetterGrade]
    presence_percentage: Decimal
    final_grade: Optional[Decimal]
    grade_count: int
    attendance_count: int
    attendance_breakdown: Dict[AttendanceStatus, int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'enrollment_id': self.enrollment_id,
            'student_id': self.student_id,
            'course_id': self.course_id,
            'enrollment_date': self.enrollment_date,
            'status': self.status.value,
            'weighted_percentage': self.weighted_percentage,
            'letter_grade': self.letter_grade.value if self.letter_grade else None,
            'presence_percentage': self.presence_percentage,
            'final_grade': self.final_grade,
            'grade_count': self.grade_count,
            'attendance_count': self.attendance_count,
            'attendance_breakdown': {
                status.value: count for status, count in self.attendance_breakdown.items()
            }
        }


@dataclass(frozen=True)
class CourseStatistics:
    """Per-course enrollment figures."""

    course_id: str
    status_counts: Dict[EnrollmentStatus, int]
    average_final_grade: Optional[Decimal]
    available_spots: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'course_id': self.course_id,
            'status_counts': {status.value: count for status, count in self.status_counts.items()},
            'average_final_grade': self.average_final_grade,
            'available_spots': self.available_spots
        }
