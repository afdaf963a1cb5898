"""Domain models for the exercise assessment engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Union

SubmitTrigger = Literal["user", "timeout"]
SUBMIT_TRIGGERS: tuple[str, ...] = ("user", "timeout")


# --- Questions ---


@dataclass(frozen=True, slots=True)
class MultipleChoiceQuestion:
    """Single-answer question; one option index is correct."""

    prompt: str
    options: tuple[str, ...]
    correct_index: int
    points: int = 1


@dataclass(frozen=True, slots=True)
class TrueFalseQuestion:
    """Two fixed options, index 0 is "True" and index 1 is "False"."""

    prompt: str
    correct_index: int
    points: int = 1

    @property
    def options(self) -> tuple[str, ...]:
        return ("True", "False")


@dataclass(frozen=True, slots=True)
class MultipleSelectQuestion:
    """Any number of options may be correct; graded all-or-nothing."""

    prompt: str
    options: tuple[str, ...]
    correct_indexes: frozenset[int]
    points: int = 1


@dataclass(frozen=True, slots=True)
class ShortAnswerQuestion:
    """Free text answer without an answer key."""

    prompt: str
    points: int = 1


Question = Union[
    MultipleChoiceQuestion,
    TrueFalseQuestion,
    MultipleSelectQuestion,
    ShortAnswerQuestion,
]


def requires_manual_grading(question: Question) -> bool:
    """Return True when a human has to score the question."""
    return isinstance(question, ShortAnswerQuestion)


def question_type_name(question: Question) -> str:
    if isinstance(question, MultipleChoiceQuestion):
        return "mcq"
    if isinstance(question, TrueFalseQuestion):
        return "true-false"
    if isinstance(question, MultipleSelectQuestion):
        return "multiple-select"
    if isinstance(question, ShortAnswerQuestion):
        return "short-answer"
    raise TypeError(f"Unsupported question type: {type(question).__name__}")


# --- Answers ---


@dataclass(frozen=True, slots=True)
class ScalarAnswer:
    """Selected option index for MCQ and true/false questions."""

    index: int


@dataclass(frozen=True, slots=True)
class MultiSelectAnswer:
    """Set of selected option indexes."""

    indexes: frozenset[int]


@dataclass(frozen=True, slots=True)
class TextAnswer:
    """Free text typed by the student."""

    text: str


@dataclass(frozen=True, slots=True)
class Unanswered:
    """Placeholder for a question the student left untouched."""


UNANSWERED = Unanswered()

AnswerValue = Union[ScalarAnswer, MultiSelectAnswer, TextAnswer, Unanswered]


@dataclass(frozen=True, slots=True)
class AnswerResult:
    """Outcome of grading a single answer."""

    is_correct: bool
    earned_points: int
    needs_manual_grading: bool = False


# --- Exercises and submissions ---


@dataclass(frozen=True, slots=True)
class Exercise:
    """A published quiz definition. Total points are derived from the questions."""

    id: str
    title: str
    questions: tuple[Question, ...]
    time_limit_minutes: int | None = None
    due_date: datetime | None = None
    description: str = ""
    category: str = "General"
    difficulty: str = "medium"

    @property
    def total_points(self) -> int:
        return sum(question.points for question in self.questions)

    @property
    def time_limit_seconds(self) -> int | None:
        if self.time_limit_minutes is None:
            return None
        return self.time_limit_minutes * 60


@dataclass(frozen=True, slots=True)
class Aggregate:
    """Derived score pair for a list of results."""

    score: int
    percentage: float


@dataclass(frozen=True, slots=True)
class Submission:
    """A finalized attempt. Score fields are always derived from ``results``."""

    exercise_id: str
    student_id: str
    answers: tuple[AnswerValue, ...]
    results: tuple[AnswerResult, ...]
    time_spent_seconds: int
    submitted_at: datetime
    score: int
    total_points: int
    percentage: float
    trigger: SubmitTrigger = "user"
    graded_at: datetime | None = field(default=None, compare=False)

    @property
    def key(self) -> tuple[str, str]:
        return (self.exercise_id, self.student_id)

    @property
    def needs_grading(self) -> bool:
        return any(result.needs_manual_grading for result in self.results)
