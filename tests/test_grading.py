import pytest

from exercise_app.core.errors import ValidationError
from exercise_app.core.grading import grade, grade_all
from exercise_app.core.models import (
    UNANSWERED,
    AnswerResult,
    MultiSelectAnswer,
    MultipleChoiceQuestion,
    MultipleSelectQuestion,
    ScalarAnswer,
    ShortAnswerQuestion,
    TextAnswer,
    TrueFalseQuestion,
)

MCQ = MultipleChoiceQuestion(prompt="Pick A", options=("A", "B"), correct_index=0, points=10)
MULTI = MultipleSelectQuestion(
    prompt="Pick A and C",
    options=("A", "B", "C"),
    correct_indexes=frozenset({0, 2}),
    points=10,
)
SHORT = ShortAnswerQuestion(prompt="Why?", points=5)


def test_mcq_correct_answer_earns_full_points():
    assert grade(MCQ, ScalarAnswer(0)) == AnswerResult(True, 10, False)


def test_mcq_wrong_answer_earns_nothing():
    assert grade(MCQ, ScalarAnswer(1)) == AnswerResult(False, 0, False)


def test_true_false_uses_scalar_equality():
    question = TrueFalseQuestion(prompt="1 < 2", correct_index=0, points=2)
    assert grade(question, ScalarAnswer(0)).earned_points == 2
    assert grade(question, ScalarAnswer(1)).earned_points == 0


@pytest.mark.parametrize(
    "selection",
    [frozenset({0}), frozenset({0, 1, 2}), frozenset({1}), frozenset()],
    ids=["subset", "superset", "disjoint", "empty"],
)
def test_multiple_select_has_no_partial_credit(selection):
    result = grade(MULTI, MultiSelectAnswer(selection))
    assert result == AnswerResult(False, 0, False)


def test_multiple_select_exact_match_scores():
    assert grade(MULTI, MultiSelectAnswer(frozenset({2, 0}))) == AnswerResult(True, 10, False)


@pytest.mark.parametrize("answer", [TextAnswer(""), TextAnswer("Because."), UNANSWERED])
def test_short_answer_is_always_queued_for_review(answer):
    assert grade(SHORT, answer) == AnswerResult(False, 0, True)


@pytest.mark.parametrize("question", [MCQ, MULTI], ids=["mcq", "multi"])
def test_unanswered_auto_graded_question_is_incorrect_and_not_flagged(question):
    assert grade(question, UNANSWERED) == AnswerResult(False, 0, False)


def test_answer_of_wrong_shape_is_incorrect():
    assert grade(MCQ, TextAnswer("0")).is_correct is False
    assert grade(MCQ, MultiSelectAnswer(frozenset({0}))).is_correct is False
    assert grade(MULTI, ScalarAnswer(0)).is_correct is False


def test_grade_is_deterministic():
    answer = MultiSelectAnswer(frozenset({0, 2}))
    assert grade(MULTI, answer) == grade(MULTI, answer)


def test_unknown_question_type_is_rejected():
    with pytest.raises(ValidationError):
        grade(object(), UNANSWERED)


def test_grade_all_requires_matching_lengths():
    assert len(grade_all([MCQ, SHORT], [ScalarAnswer(0), UNANSWERED])) == 2
    with pytest.raises(ValidationError):
        grade_all([MCQ, SHORT], [ScalarAnswer(0)])
