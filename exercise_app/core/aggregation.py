"""Derives score, percentage, and letter grade from per-answer results."""

from __future__ import annotations

from collections.abc import Iterable

from exercise_app.constants.exercise_constants import GRADE_THRESHOLDS, FAILING_GRADE
from exercise_app.core.errors import ValidationError
from exercise_app.core.models import Aggregate, AnswerResult


def aggregate(results: Iterable[AnswerResult], total_points: int) -> Aggregate:
    """Sum earned points and convert them into a percentage of ``total_points``.

    A zero-point exercise reports 0%. The percentage is clamped to [0, 100].
    """
    if total_points < 0:
        raise ValidationError("Total points cannot be negative.")

    score = sum(result.earned_points for result in results)
    if total_points > 0:
        percentage = (score / total_points) * 100
    else:
        percentage = 0.0
    return Aggregate(score=score, percentage=max(0.0, min(100.0, percentage)))


def letter_grade(percentage: float) -> str:
    for threshold, letter in GRADE_THRESHOLDS:
        if percentage >= threshold:
            return letter
    return FAILING_GRADE
