"""Utilities for exporting exercises to the plain-text format used for imports."""

from __future__ import annotations

from pathlib import Path

from exercise_app.core.exercise_importer import OPTION_LETTERS
from exercise_app.core.models import (
    Exercise,
    MultipleChoiceQuestion,
    MultipleSelectQuestion,
    Question,
    ShortAnswerQuestion,
    TrueFalseQuestion,
)


def save_exercise_to_file(file_path: Path, exercise: Exercise) -> None:
    """Persist the exercise to disk in the text import format."""

    if not exercise.questions:
        raise ValueError("Cannot export an exercise without questions.")

    file_path = file_path.resolve()
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(serialize_exercise(exercise), encoding="utf-8")


def serialize_exercise(exercise: Exercise) -> str:
    blocks = [_serialize_header(exercise)]
    blocks.extend(_serialize_question(question) for question in exercise.questions)
    return "\n\n---\n\n".join(blocks) + "\n"


def _serialize_header(exercise: Exercise) -> str:
    lines = [f"TITLE: {exercise.title}"]
    if exercise.time_limit_minutes is not None:
        lines.append(f"TIMELIMIT: {exercise.time_limit_minutes}")
    if exercise.due_date is not None:
        lines.append(f"DUE: {exercise.due_date.isoformat()}")
    lines.append(f"CATEGORY: {exercise.category}")
    lines.append(f"DIFFICULTY: {exercise.difficulty}")
    if exercise.description:
        lines.append(f"DESCRIPTION: {' '.join(exercise.description.split())}")
    return "\n".join(lines)


def _serialize_question(question: Question) -> str:
    lines: list[str] = []
    if isinstance(question, TrueFalseQuestion):
        lines.append("TYPE: TRUEFALSE")
    elif isinstance(question, MultipleSelectQuestion):
        lines.append("TYPE: MULTISELECT")
    elif isinstance(question, ShortAnswerQuestion):
        lines.append("TYPE: SHORT")
    else:
        lines.append("TYPE: MCQ")

    prompt_lines = _block_lines(question.prompt, "Question text")
    lines.append(f"Q: {prompt_lines[0]}")
    lines.extend(prompt_lines[1:])

    if isinstance(question, (MultipleChoiceQuestion, MultipleSelectQuestion)):
        if len(question.options) > len(OPTION_LETTERS):
            raise ValueError(f"The text format supports at most {len(OPTION_LETTERS)} options.")
        for letter, option_text in zip(OPTION_LETTERS, question.options):
            option_lines = _block_lines(option_text, f"Option {letter}")
            lines.append(f"{letter}: {option_lines[0]}")
            lines.extend(option_lines[1:])

    if isinstance(question, MultipleChoiceQuestion):
        lines.append(f"CORRECT: {OPTION_LETTERS[question.correct_index]}")
    elif isinstance(question, MultipleSelectQuestion):
        letters = ", ".join(OPTION_LETTERS[index] for index in sorted(question.correct_indexes))
        lines.append(f"CORRECT: {letters}")
    elif isinstance(question, TrueFalseQuestion):
        lines.append(f"CORRECT: {'TRUE' if question.correct_index == 0 else 'FALSE'}")

    lines.append(f"POINTS: {question.points}")
    return "\n".join(lines)


def _block_lines(text: str, label: str) -> list[str]:
    # A blank line would end the question block on re-import.
    lines = text.splitlines() or [text]
    if any(not line.strip() for line in lines[1:]):
        raise ValueError(f"{label} cannot contain blank lines in the text format.")
    return lines
