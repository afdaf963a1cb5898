from threading import Barrier, Thread

import pytest

from exercise_app.core.errors import DuplicateSubmissionError, ValidationError
from exercise_app.core.models import (
    UNANSWERED,
    Exercise,
    MultiSelectAnswer,
    ScalarAnswer,
    ShortAnswerQuestion,
    TextAnswer,
)
from exercise_app.core.services.review_ledger import ManualReviewLedger
from exercise_app.core.services.submission_coordinator import (
    SubmissionCoordinator,
    pad_answers,
)
from exercise_app.core.services.submission_store import SubmissionStore


def _coordinator(on_finalized=None):
    store = SubmissionStore()
    ledger = ManualReviewLedger(store)
    coordinator = SubmissionCoordinator("student-1", store, ledger, on_finalized=on_finalized)
    return coordinator, store, ledger


def _answers():
    return [
        ScalarAnswer(1),
        ScalarAnswer(1),
        MultiSelectAnswer(frozenset({0, 2})),
        TextAnswer("Plants make sugar."),
    ]


def test_finalize_grades_and_stores(mixed_exercise):
    finalized = []
    coordinator, store, ledger = _coordinator(on_finalized=finalized.append)

    submission = coordinator.finalize(mixed_exercise, _answers(), 120, "user")

    assert submission.score == 6
    assert submission.total_points == 10
    assert submission.percentage == pytest.approx(60.0)
    assert [r.needs_manual_grading for r in submission.results] == [False, False, False, True]
    assert submission.needs_grading is True
    assert store.get("mixed", "student-1") is submission
    assert finalized == [submission]
    assert [p.question_index for p in ledger.pending_items()] == [3]


def test_missing_trailing_answers_are_padded(mixed_exercise):
    coordinator, _, _ = _coordinator()
    submission = coordinator.finalize(mixed_exercise, [ScalarAnswer(1)], 10, "user")
    assert submission.answers == (ScalarAnswer(1), UNANSWERED, UNANSWERED, UNANSWERED)
    assert submission.score == 2


def test_too_many_answers_is_a_validation_error(mixed_exercise):
    coordinator, _, _ = _coordinator()
    with pytest.raises(ValidationError):
        coordinator.finalize(mixed_exercise, _answers() + [ScalarAnswer(0)], 10, "user")
    assert coordinator.is_finalized() is False


@pytest.mark.parametrize(("seconds", "trigger"), [(-1, "user"), (5, "teacher")])
def test_bad_time_or_trigger_is_rejected(mixed_exercise, seconds, trigger):
    coordinator, _, _ = _coordinator()
    with pytest.raises(ValidationError):
        coordinator.finalize(mixed_exercise, [], seconds, trigger)


def test_pad_answers_replaces_none():
    assert pad_answers(3, [None, ScalarAnswer(0)]) == (UNANSWERED, ScalarAnswer(0), UNANSWERED)


def test_refinalize_is_a_noop(mixed_exercise):
    finalized = []
    coordinator, _, _ = _coordinator(on_finalized=finalized.append)
    first = coordinator.finalize(mixed_exercise, _answers(), 120, "timeout")

    again = coordinator.finalize(mixed_exercise, _answers(), 999, "user")

    assert again is first
    assert again.time_spent_seconds == 120
    assert again.submitted_at == first.submitted_at
    assert again.trigger == "timeout"
    assert len(finalized) == 1


def test_refinalize_with_different_answers_is_rejected(mixed_exercise):
    coordinator, _, _ = _coordinator()
    coordinator.finalize(mixed_exercise, _answers(), 120, "user")
    with pytest.raises(DuplicateSubmissionError):
        coordinator.finalize(mixed_exercise, [ScalarAnswer(0)], 120, "user")


def test_late_forced_submit_is_ignored_even_with_other_answers(mixed_exercise):
    coordinator, _, _ = _coordinator()
    first = coordinator.finalize(mixed_exercise, _answers(), 30, "user")
    assert coordinator.finalize(mixed_exercise, [], 60, "timeout") is first


def test_store_rejects_second_attempt_from_another_session(mixed_exercise):
    coordinator, store, ledger = _coordinator()
    coordinator.finalize(mixed_exercise, _answers(), 10, "user")
    other = SubmissionCoordinator("student-1", store, ledger)
    with pytest.raises(DuplicateSubmissionError):
        other.finalize(mixed_exercise, _answers(), 10, "user")
    assert other.is_finalized() is False


def test_racing_timeout_and_user_submit_finalize_once(mixed_exercise):
    finalized = []
    coordinator, store, _ = _coordinator(on_finalized=finalized.append)
    barrier = Barrier(2)
    outcomes = []

    def submit(trigger):
        barrier.wait()
        outcomes.append(coordinator.finalize(mixed_exercise, _answers(), 60, trigger))

    threads = [Thread(target=submit, args=(t,)) for t in ("user", "timeout")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(outcomes) == 2
    assert outcomes[0] is outcomes[1]
    assert len(finalized) == 1
    assert store.list_for_student("student-1") == [outcomes[0]]


def test_zero_point_exercise_scores_zero_percent():
    empty = Exercise(id="empty", title="Nothing to do", questions=())
    coordinator, _, _ = _coordinator()
    submission = coordinator.finalize(empty, [], 0, "user")
    assert submission.score == 0
    assert submission.percentage == 0.0


def test_short_answer_only_exercise_starts_at_zero():
    exercise = Exercise(id="essay", title="Essay", questions=(ShortAnswerQuestion(prompt="Discuss."),))
    coordinator, _, _ = _coordinator()
    submission = coordinator.finalize(exercise, [TextAnswer("")], 5, "user")
    assert submission.score == 0
    assert submission.results[0].needs_manual_grading is True
