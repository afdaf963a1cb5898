"""Service for storing exercise definitions and validating their questions."""

from __future__ import annotations

from dataclasses import replace
from threading import Lock
from uuid import uuid4

from exercise_app.core.errors import ExerciseNotFoundError, ValidationError
from exercise_app.core.models import (
    Exercise,
    MultipleChoiceQuestion,
    MultipleSelectQuestion,
    Question,
    ShortAnswerQuestion,
    TrueFalseQuestion,
)


def validate_question(question: Question) -> None:
    """Reject non-positive points and answer keys that point outside the options."""
    points = question.points
    if isinstance(points, bool) or not isinstance(points, int):
        raise ValidationError("Question points must be an integer.")
    if points <= 0:
        raise ValidationError("Question points must be a positive integer.")

    if isinstance(question, MultipleChoiceQuestion):
        _validate_options(question.options)
        if not 0 <= question.correct_index < len(question.options):
            raise ValidationError(
                f"Correct option index must be between 0 and {len(question.options) - 1}."
            )
    elif isinstance(question, TrueFalseQuestion):
        if question.correct_index not in (0, 1):
            raise ValidationError("True/false answer key must be 0 (True) or 1 (False).")
    elif isinstance(question, MultipleSelectQuestion):
        _validate_options(question.options)
        if not question.correct_indexes:
            raise ValidationError("Multiple-select questions need at least one correct option.")
        out_of_range = [i for i in question.correct_indexes if not 0 <= i < len(question.options)]
        if out_of_range:
            raise ValidationError(f"Correct option indexes out of range: {sorted(out_of_range)}")
    elif not isinstance(question, ShortAnswerQuestion):
        raise ValidationError(f"Unsupported question type: {type(question).__name__}")


def validate_exercise(exercise: Exercise) -> None:
    if not exercise.title.strip():
        raise ValidationError("Exercise title must not be empty.")
    if exercise.time_limit_minutes is not None and exercise.time_limit_minutes <= 0:
        raise ValidationError("Time limit must be a positive number of minutes.")
    for position, question in enumerate(exercise.questions):
        try:
            validate_question(question)
        except ValidationError as exc:
            raise ValidationError(f"Question {position + 1}: {exc}") from exc


def _validate_options(options: tuple[str, ...]) -> None:
    if len(options) < 2:
        raise ValidationError("Each question must have at least two options.")
    if any(not option.strip() for option in options):
        raise ValidationError("Option text cannot be empty.")


class ExerciseRepository:
    """Holds validated exercises and their publication state."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._exercises: dict[str, Exercise] = {}
        self._published: set[str] = set()

    def add_exercise(self, exercise: Exercise) -> Exercise:
        """Validate and store a new exercise. A blank id is replaced with a generated one."""
        validate_exercise(exercise)
        if not exercise.id:
            exercise = replace(exercise, id=uuid4().hex)
        with self._lock:
            if exercise.id in self._exercises:
                raise ValidationError(f"Exercise {exercise.id!r} already exists.")
            self._exercises[exercise.id] = exercise
        return exercise

    def get_exercise(self, exercise_id: str) -> Exercise:
        with self._lock:
            exercise = self._exercises.get(exercise_id)
        if exercise is None:
            raise ExerciseNotFoundError(f"Exercise {exercise_id!r} not found.")
        return exercise

    def get_exercises(self) -> list[Exercise]:
        """Return all exercises, most recently added first."""
        with self._lock:
            return list(reversed(self._exercises.values()))

    def set_published(self, exercise_id: str, published: bool) -> None:
        self.get_exercise(exercise_id)
        with self._lock:
            if published:
                self._published.add(exercise_id)
            else:
                self._published.discard(exercise_id)

    def is_published(self, exercise_id: str) -> bool:
        with self._lock:
            return exercise_id in self._published

    def delete_exercise(self, exercise_id: str) -> None:
        with self._lock:
            if self._exercises.pop(exercise_id, None) is None:
                raise ExerciseNotFoundError(f"Exercise {exercise_id!r} not found.")
            self._published.discard(exercise_id)
