"""
Weighted grade computation for a single enrollment.

All functions are pure. Grades are validated when they are created (see
``entities.Grade``), so every grade reaching this module has a positive
weight and a score within its maximum.
"""

from decimal import Decimal
from typing import Iterable, Optional

from .enums import LetterGrade
from .entities import Grade, validate_grade_values
from .numeric import HUNDRED, ZERO, round_percentage, to_decimal

LETTER_BREAKPOINTS = (
    (Decimal("90"), LetterGrade.A),
    (Decimal("80"), LetterGrade.B),
    (Decimal("70"), LetterGrade.C),
    (Decimal("60"), LetterGrade.D),
)


def compute_weighted_percentage(grades: Iterable[Grade]) -> Optional[Decimal]:
    """Weighted average of the grade percentages, or None with no grades.

    Each grade contributes ``score / max_score * 100 * weight``; the sum is
    divided by the total weight and rounded half up to two places. Only the
    final figure is rounded, so the result does not depend on input order.
    """
    total_contribution = ZERO
    total_weight = ZERO
    for grade in grades:
        total_contribution += grade.score * HUNDRED / grade.max_score * grade.weight
        total_weight += grade.weight

    if total_weight == ZERO:
        return None
    return round_percentage(total_contribution / total_weight)


def letter_grade(percentage) -> LetterGrade:
    """Map a percentage to a letter using inclusive lower bounds."""
    value = to_decimal(percentage, "percentage")
    for lower_bound, letter in LETTER_BREAKPOINTS:
        if value >= lower_bound:
            return letter
    return LetterGrade.F


def is_passing(percentage, passing_threshold) -> bool:
    """True when the percentage reaches the threshold. No grade never passes."""
    if percentage is None:
        return False
    return to_decimal(percentage, "percentage") >= to_decimal(passing_threshold, "passing_threshold")
