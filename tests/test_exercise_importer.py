from datetime import datetime
from textwrap import dedent

import pytest

from exercise_app.core.exercise_exporter import save_exercise_to_file, serialize_exercise
from exercise_app.core.exercise_importer import (
    ExerciseImportError,
    load_exercise_from_file,
    parse_exercise_text,
)
from exercise_app.core.models import (
    Exercise,
    MultipleChoiceQuestion,
    MultipleSelectQuestion,
    ShortAnswerQuestion,
    TrueFalseQuestion,
)

SAMPLE = dedent(
    """\
    TITLE: Fractions
    TIMELIMIT: 10
    DUE: 2026-11-01T12:00
    CATEGORY: Math

    ---

    Q: What is $\\frac{1}{2} + \\frac{1}{4}$?
    A: $\\frac{3}{4}$
    B: $\\frac{2}{6}$
    CORRECT: A
    POINTS: 2

    TYPE: TRUEFALSE
    Q: One half equals two quarters.
    CORRECT: TRUE

    TYPE: MULTISELECT
    Q: Which fractions equal one half?
    A: 2/4
    B: 1/3
    C: 3/6
    CORRECT: A, C
    POINTS: 3

    TYPE: SHORT
    Q: Explain why 2/4 equals 1/2.
    Use your own words.
    POINTS: 5
    """
)


def test_parse_full_exercise():
    exercise = parse_exercise_text(SAMPLE, exercise_id="fractions")

    assert exercise.id == "fractions"
    assert exercise.title == "Fractions"
    assert exercise.time_limit_minutes == 10
    assert exercise.due_date == datetime(2026, 11, 1, 12, 0)
    assert exercise.category == "Math"
    assert exercise.total_points == 11

    mcq, true_false, multi, short = exercise.questions
    assert isinstance(mcq, MultipleChoiceQuestion)
    assert mcq.correct_index == 0
    assert mcq.points == 2
    assert isinstance(true_false, TrueFalseQuestion)
    assert true_false.correct_index == 0
    assert true_false.points == 1
    assert isinstance(multi, MultipleSelectQuestion)
    assert multi.correct_indexes == frozenset({0, 2})
    assert isinstance(short, ShortAnswerQuestion)
    assert short.prompt == "Explain why 2/4 equals 1/2.\nUse your own words."


def test_export_then_import_preserves_exercise(tmp_path):
    exercise = parse_exercise_text(SAMPLE, exercise_id="fractions")
    path = tmp_path / "nested" / "fractions.txt"

    save_exercise_to_file(path, exercise)
    imported = load_exercise_from_file(path, exercise_id="fractions")

    assert imported.exercise == exercise
    assert imported.source_path == path
    assert "CORRECT: A, C" in serialize_exercise(exercise)


@pytest.mark.parametrize(
    "text",
    [
        "",
        "Q: no header\nA: x\nB: y\nCORRECT: A",
        "TITLE: Only header",
        "TITLE: T\n\nQ: q\nA: x\nB: y",
        "TITLE: T\n\nQ: q\nA: x\nB: y\nCORRECT: C",
        "TITLE: T\n\nQ: q\nA: x\nC: y\nCORRECT: A",
        "TITLE: T\n\nTYPE: ESSAY\nQ: q",
        "TITLE: T\n\nTYPE: TRUEFALSE\nQ: q\nCORRECT: MAYBE",
        "TITLE: T\n\nTYPE: SHORT\nQ: q\nPOINTS: 0",
        "TITLE: T\nTIMELIMIT: soon\n\nTYPE: SHORT\nQ: q",
        "TITLE: T\nCOLOR: blue\n\nTYPE: SHORT\nQ: q",
        "TITLE: T\n\nstray text",
    ],
    ids=[
        "empty",
        "missing-header",
        "no-questions",
        "missing-correct",
        "correct-out-of-range",
        "gap-in-options",
        "unknown-type",
        "bad-true-false",
        "zero-points",
        "bad-timelimit",
        "unknown-header-key",
        "stray-text",
    ],
)
def test_malformed_files_are_rejected(text):
    with pytest.raises(ExerciseImportError):
        parse_exercise_text(text)


def test_manager_imports_from_file(manager, tmp_path):
    path = tmp_path / "fractions.txt"
    path.write_text(SAMPLE, encoding="utf-8")

    exercise = manager.import_exercise(path, published=True)

    assert manager.is_published(exercise.id)
    assert manager.get_exercise(exercise.id).title == "Fractions"


@pytest.mark.parametrize(
    "question",
    [
        ShortAnswerQuestion(prompt="Para one.\n\nPara two."),
        MultipleChoiceQuestion(prompt="Pick", options=("first\n\nsecond", "other"), correct_index=0),
    ],
    ids=["prompt", "option"],
)
def test_export_rejects_blank_lines_inside_a_block(question):
    exercise = Exercise(id="x", title="Paragraphs", questions=(question,))
    with pytest.raises(ValueError, match="blank lines"):
        serialize_exercise(exercise)


def test_multiline_prompt_survives_export(tmp_path):
    question = ShortAnswerQuestion(prompt="Line one.\nLine two.", points=2)
    exercise = Exercise(id="x", title="Lines", questions=(question,))
    path = tmp_path / "lines.txt"

    save_exercise_to_file(path, exercise)

    assert load_exercise_from_file(path, exercise_id="x").exercise == exercise
