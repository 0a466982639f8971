from decimal import Decimal

import pytest

from edurecord.core.entities import Grade
from edurecord.core.enums import LetterGrade
from edurecord.core.exceptions import InvalidGrade
from edurecord.core.grade_ledger import compute_weighted_percentage, is_passing, letter_grade


def test_equal_weights_average_the_percentages():
    grades = [Grade("Midterm", 85), Grade("Final", 95)]
    assert compute_weighted_percentage(grades) == Decimal("90.00")


def test_weights_scale_each_contribution():
    grades = [Grade("Homework", 100, weight=1), Grade("Exam", 50, weight=3)]
    assert compute_weighted_percentage(grades) == Decimal("62.50")


def test_scores_are_normalized_by_max_score():
    grades = [Grade("Quiz", 8, max_score=10), Grade("Project", 45, max_score=50)]
    assert compute_weighted_percentage(grades) == Decimal("85.00")


def test_result_does_not_depend_on_order():
    grades = [
        Grade("A1", 1, max_score=3),
        Grade("A2", 2, max_score=3, weight=Decimal("2.5")),
        Grade("A3", 77, weight=Decimal("0.5")),
    ]
    assert compute_weighted_percentage(grades) == compute_weighted_percentage(list(reversed(grades)))


def test_only_the_final_figure_is_rounded():
    # Rounding each grade first would give (10.00 + 10.01) / 2 = 10.005 -> 10.01
    grades = [Grade("A", Decimal("10.0049")), Grade("B", Decimal("10.005"))]
    assert compute_weighted_percentage(grades) == Decimal("10.00")


def test_fractional_scores_keep_full_precision():
    grades = [Grade("A", 1, max_score=3), Grade("B", 2, max_score=3, weight=2)]
    assert compute_weighted_percentage(grades) == Decimal("55.56")


def test_rounding_is_half_up():
    grades = [Grade("A", Decimal("89.995"))]
    assert compute_weighted_percentage(grades) == Decimal("90.00")


def test_no_grades_has_no_percentage():
    assert compute_weighted_percentage([]) is None


def test_percentage_stays_within_bounds():
    assert compute_weighted_percentage([Grade("Zero", 0)]) == Decimal("0.00")
    assert compute_weighted_percentage([Grade("Full", 100, weight=100)]) == Decimal("100.00")


@pytest.mark.parametrize("percentage, expected", [
    (Decimal("100.00"), LetterGrade.A),
    (Decimal("90.00"), LetterGrade.A),
    (Decimal("89.99"), LetterGrade.B),
    (Decimal("80.00"), LetterGrade.B),
    (Decimal("79.99"), LetterGrade.C),
    (Decimal("70.00"), LetterGrade.C),
    (Decimal("60.00"), LetterGrade.D),
    (Decimal("59.99"), LetterGrade.F),
    (Decimal("0.00"), LetterGrade.F),
])
def test_letter_grade_breakpoints(percentage, expected):
    assert letter_grade(percentage) == expected


def test_passing_uses_inclusive_threshold():
    assert is_passing(Decimal("60.00"), Decimal("60.00"))
    assert not is_passing(Decimal("59.99"), Decimal("60.00"))
    assert not is_passing(None, Decimal("0"))


@pytest.mark.parametrize("kwargs", [
    {"assignment_name": "", "score": 10},
    {"assignment_name": "x" * 256, "score": 10},
    {"assignment_name": "Quiz", "score": -1},
    {"assignment_name": "Quiz", "score": 11, "max_score": 10},
    {"assignment_name": "Quiz", "score": 5, "max_score": 0},
    {"assignment_name": "Quiz", "score": 5, "weight": 0},
    {"assignment_name": "Quiz", "score": 5, "weight": 101},
    {"assignment_name": "Quiz", "score": "abc"},
    {"assignment_name": "Quiz", "score": float("nan")},
])
def test_invalid_grades_are_rejected(kwargs):
    with pytest.raises(InvalidGrade) as exc_info:
        Grade(**kwargs)
    assert exc_info.value.error_code == "INVALID_GRADE"


def test_grade_percentage():
    assert Grade("Quiz", 7, max_score=8).percentage() == Decimal("87.50")


def test_validate_grade_values_normalizes():
    from edurecord.core.grade_ledger import validate_grade_values
    assert validate_grade_values("  Quiz ", "7", 8, "0.5") == ("Quiz", Decimal("7"), Decimal("8"), Decimal("0.5"))


def test_grade_letter():
    assert Grade("Quiz", 72, max_score=80).letter_grade() == LetterGrade.A
    assert Grade("Quiz", 40).letter_grade() == LetterGrade.F
