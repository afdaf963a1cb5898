"""Pure grading rules: one question and one answer in, one result out."""

from __future__ import annotations

from collections.abc import Sequence

from exercise_app.core.errors import ValidationError
from exercise_app.core.models import (
    AnswerResult,
    AnswerValue,
    MultiSelectAnswer,
    MultipleChoiceQuestion,
    MultipleSelectQuestion,
    Question,
    ScalarAnswer,
    ShortAnswerQuestion,
    TrueFalseQuestion,
)

_PENDING_REVIEW = AnswerResult(is_correct=False, earned_points=0, needs_manual_grading=True)


def grade(question: Question, answer: AnswerValue) -> AnswerResult:
    """Grade a single answer against its question.

    Auto-graded types are all-or-nothing. Short answers always go to manual
    review, even when left empty, so the reviewer sees the blank.
    """
    if isinstance(question, (MultipleChoiceQuestion, TrueFalseQuestion)):
        is_correct = isinstance(answer, ScalarAnswer) and answer.index == question.correct_index
        return _scored(is_correct, question.points)

    if isinstance(question, MultipleSelectQuestion):
        is_correct = (
            isinstance(answer, MultiSelectAnswer)
            and answer.indexes == question.correct_indexes
        )
        return _scored(is_correct, question.points)

    if isinstance(question, ShortAnswerQuestion):
        return _PENDING_REVIEW

    raise ValidationError(f"Unsupported question type: {type(question).__name__}")


def grade_all(questions: Sequence[Question], answers: Sequence[AnswerValue]) -> list[AnswerResult]:
    """Grade answers positionally. Both sequences must have the same length."""
    if len(questions) != len(answers):
        raise ValidationError(
            f"Expected {len(questions)} answers, got {len(answers)}."
        )
    return [grade(question, answer) for question, answer in zip(questions, answers)]


def _scored(is_correct: bool, points: int) -> AnswerResult:
    return AnswerResult(
        is_correct=is_correct,
        earned_points=points if is_correct else 0,
        needs_manual_grading=False,
    )
