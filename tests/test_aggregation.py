import pytest

from exercise_app.core.aggregation import aggregate, letter_grade
from exercise_app.core.errors import ValidationError
from exercise_app.core.models import AnswerResult


def test_aggregate_sums_earned_points():
    results = [AnswerResult(True, 10), AnswerResult(False, 0), AnswerResult(True, 5)]
    totals = aggregate(results, 20)
    assert totals.score == 15
    assert totals.percentage == pytest.approx(75.0)


def test_zero_point_exercise_reports_zero_percent():
    totals = aggregate([], 0)
    assert totals.score == 0
    assert totals.percentage == 0.0


def test_percentage_is_clamped():
    assert aggregate([AnswerResult(True, 30)], 10).percentage == 100.0


def test_negative_total_is_rejected():
    with pytest.raises(ValidationError):
        aggregate([], -1)


@pytest.mark.parametrize(
    ("percentage", "expected"),
    [(100, "A"), (90, "A"), (89.9, "B"), (80, "B"), (70, "C"), (60, "D"), (59.99, "F"), (0, "F")],
)
def test_letter_grade_boundaries(percentage, expected):
    assert letter_grade(percentage) == expected
