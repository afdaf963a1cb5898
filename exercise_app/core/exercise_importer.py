"""Utilities for importing exercises from a human-friendly text file.

File format: a header block, then question blocks. Blocks are separated by
blank lines or '---'.

    TITLE: Exercise title (required)
    TIMELIMIT: minutes        (optional, omit for an untimed exercise)
    DUE: 2026-11-01T12:00     (optional, ISO 8601)
    CATEGORY: Math            (optional)
    DIFFICULTY: easy          (optional)
    DESCRIPTION: free text    (optional)

    TYPE: MCQ | TRUEFALSE | MULTISELECT | SHORT   (optional, defaults to MCQ)
    Q: Question text (markdown + LaTeX). Following non-blank lines until the next
       marker belong to the question.
    A: First option
    B: Second option           (options A-F; not used by TRUEFALSE/SHORT)
    CORRECT: B                 (MCQ), A, C (MULTISELECT), TRUE|FALSE (TRUEFALSE)
    POINTS: 2                  (optional, defaults to 1)

Example:

    TITLE: Fractions
    TIMELIMIT: 10

    Q: What is $\\frac{1}{2} + \\frac{1}{4}$?
    A: $\\frac{3}{4}$
    B: $\\frac{2}{6}$
    CORRECT: A
    POINTS: 2

    TYPE: SHORT
    Q: Explain why $\\frac{2}{4} = \\frac{1}{2}$.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from exercise_app.constants.exercise_constants import DEFAULT_QUESTION_POINTS
from exercise_app.core.errors import ValidationError
from exercise_app.core.models import (
    Exercise,
    MultipleChoiceQuestion,
    MultipleSelectQuestion,
    Question,
    ShortAnswerQuestion,
    TrueFalseQuestion,
)
from exercise_app.core.services.exercise_repository import validate_exercise


class ExerciseImportError(Exception):
    """Raised when an exercise definition cannot be parsed."""


@dataclass(slots=True)
class ImportedExercise:
    """Container for the parsed exercise and where it came from."""

    source_path: Path
    exercise: Exercise


OPTION_LETTERS = ("A", "B", "C", "D", "E", "F")
QUESTION_TYPES = ("MCQ", "TRUEFALSE", "MULTISELECT", "SHORT")
_HEADER_KEYS = ("TITLE", "TIMELIMIT", "DUE", "CATEGORY", "DIFFICULTY", "DESCRIPTION")


def load_exercise_from_file(file_path: Path, exercise_id: str = "") -> ImportedExercise:
    text = file_path.read_text(encoding="utf-8")
    exercise = parse_exercise_text(text, exercise_id=exercise_id)
    return ImportedExercise(source_path=file_path, exercise=exercise)


def parse_exercise_text(text: str, exercise_id: str = "") -> Exercise:
    blocks = _split_blocks(text)
    if not blocks:
        raise ExerciseImportError("Exercise file is empty.")

    header = _parse_header(blocks[0])
    questions = tuple(_parse_block(block) for block in blocks[1:])
    if not questions:
        raise ExerciseImportError("Exercise file did not contain any questions.")

    exercise = Exercise(
        id=exercise_id,
        title=header.get("TITLE", ""),
        questions=questions,
        time_limit_minutes=_parse_positive_int(header.get("TIMELIMIT"), "TIMELIMIT"),
        due_date=_parse_due_date(header.get("DUE")),
        description=header.get("DESCRIPTION", ""),
        category=header.get("CATEGORY") or "General",
        difficulty=header.get("DIFFICULTY") or "medium",
    )
    try:
        validate_exercise(exercise)
    except ValidationError as exc:
        raise ExerciseImportError(str(exc)) from exc
    return exercise


def _split_blocks(text: str) -> list[str]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---" or not stripped:
            if current_block:
                blocks.append("\n".join(current_block))
                current_block = []
            continue
        current_block.append(raw_line)
    if current_block:
        blocks.append("\n".join(current_block))
    return blocks


def _parse_header(block: str) -> dict[str, str]:
    header: dict[str, str] = {}
    for raw_line in block.splitlines():
        line = raw_line.strip()
        key, separator, value = line.partition(":")
        key = key.strip().upper()
        if not separator or key not in _HEADER_KEYS:
            raise ExerciseImportError(f"Unexpected line in exercise header: '{line}'.")
        header[key] = value.strip()
    if not header.get("TITLE"):
        raise ExerciseImportError("Exercise header must start with TITLE: ...")
    return header


def _parse_block(block: str) -> Question:
    question_type = "MCQ"
    question_lines: list[str] = []
    options: dict[str, str] = {}
    correct_value: str | None = None
    points = DEFAULT_QUESTION_POINTS
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        upper = line.upper()

        if upper.startswith("TYPE:"):
            question_type = line.split(":", 1)[1].strip().upper()
            if question_type not in QUESTION_TYPES:
                raise ExerciseImportError(
                    f"TYPE must be one of {', '.join(QUESTION_TYPES)}."
                )
            current_section = None
            continue

        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith("CORRECT:"):
            correct_value = line.split(":", 1)[1].strip().upper()
            current_section = None
            continue

        if upper.startswith("POINTS:"):
            points = _parse_positive_int(line.split(":", 1)[1], "POINTS")
            current_section = None
            continue

        if len(line) > 2 and line[0].upper() in OPTION_LETTERS and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section in OPTION_LETTERS:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise ExerciseImportError(
                f"Encountered text outside of a known section: '{line}'."
            )

    prompt = "\n".join(question_lines).strip()
    if not prompt:
        raise ExerciseImportError("Question text missing (Q: ...)")

    if question_type == "SHORT":
        if options or correct_value:
            raise ExerciseImportError("SHORT questions take no options or CORRECT line.")
        return ShortAnswerQuestion(prompt=prompt, points=points)

    if question_type == "TRUEFALSE":
        if correct_value not in ("TRUE", "FALSE"):
            raise ExerciseImportError("TRUEFALSE questions need CORRECT: TRUE or FALSE.")
        return TrueFalseQuestion(
            prompt=prompt,
            correct_index=0 if correct_value == "TRUE" else 1,
            points=points,
        )

    option_list = _ordered_options(options)
    if correct_value is None:
        raise ExerciseImportError("CORRECT line missing.")
    letters = [part.strip() for part in correct_value.split(",") if part.strip()]
    indexes = [_letter_index(letter, len(option_list)) for letter in letters]

    if question_type == "MULTISELECT":
        return MultipleSelectQuestion(
            prompt=prompt,
            options=option_list,
            correct_indexes=frozenset(indexes),
            points=points,
        )

    if len(indexes) != 1:
        raise ExerciseImportError("MCQ questions take exactly one CORRECT letter.")
    return MultipleChoiceQuestion(
        prompt=prompt,
        options=option_list,
        correct_index=indexes[0],
        points=points,
    )


def _ordered_options(options: dict[str, str]) -> tuple[str, ...]:
    expected = OPTION_LETTERS[: len(options)]
    if tuple(sorted(options)) != expected:
        raise ExerciseImportError(
            "Options must use consecutive letters starting at A."
        )
    return tuple(options[letter].strip() for letter in expected)


def _letter_index(letter: str, option_count: int) -> int:
    if letter not in OPTION_LETTERS[:option_count]:
        raise ExerciseImportError(f"CORRECT letter '{letter}' does not match an option.")
    return OPTION_LETTERS.index(letter)


def _parse_positive_int(raw_value: str | None, label: str) -> int | None:
    if raw_value is None:
        return None
    raw_value = raw_value.strip()
    try:
        parsed_value = int(raw_value)
    except ValueError as exc:
        raise ExerciseImportError(f"{label} must be an integer.") from exc
    if parsed_value <= 0:
        raise ExerciseImportError(f"{label} must be a positive integer.")
    return parsed_value


def _parse_due_date(raw_value: str | None) -> datetime | None:
    if not raw_value:
        return None
    try:
        return datetime.fromisoformat(raw_value)
    except ValueError as exc:
        raise ExerciseImportError("DUE must be an ISO 8601 date or datetime.") from exc
