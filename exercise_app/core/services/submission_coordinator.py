"""Turns one attempt's in-progress answers into a graded, stored submission exactly once."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime, timezone
import logging
from threading import Condition

from exercise_app.core.aggregation import aggregate
from exercise_app.core.errors import DuplicateSubmissionError, ValidationError
from exercise_app.core.grading import grade_all
from exercise_app.core.models import (
    SUBMIT_TRIGGERS,
    UNANSWERED,
    AnswerValue,
    Exercise,
    Submission,
    SubmitTrigger,
)
from exercise_app.core.services.review_ledger import ManualReviewLedger
from exercise_app.core.services.submission_store import SubmissionStore

logger = logging.getLogger(__name__)


def pad_answers(
    question_count: int, answers: Sequence[AnswerValue | None]
) -> tuple[AnswerValue, ...]:
    """Fill missing trailing answers (and ``None`` slots) with ``UNANSWERED``."""
    if len(answers) > question_count:
        raise ValidationError(
            f"Received {len(answers)} answers for {question_count} questions."
        )
    padded = [UNANSWERED if answer is None else answer for answer in answers]
    padded.extend(UNANSWERED for _ in range(question_count - len(padded)))
    return tuple(padded)


class SubmissionCoordinator:
    """Finalizes a single student's attempt.

    The first successful ``finalize`` wins. Later calls with the same answers,
    and any late timeout, return the stored submission untouched; a user
    finalize with different answers raises :class:`DuplicateSubmissionError`.
    The finalized flag is claimed under a
    condition variable that is released before grading and storage run.
    """

    def __init__(
        self,
        student_id: str,
        store: SubmissionStore,
        ledger: ManualReviewLedger,
        on_finalized: Callable[[Submission], None] | None = None,
    ) -> None:
        self._student_id = student_id
        self._store = store
        self._ledger = ledger
        self._on_finalized = on_finalized
        self._condition = Condition()
        self._in_flight = False
        self._submission: Submission | None = None

    @property
    def submission(self) -> Submission | None:
        with self._condition:
            return self._submission

    def is_finalized(self) -> bool:
        return self.submission is not None

    def finalize(
        self,
        exercise: Exercise,
        answers: Sequence[AnswerValue | None],
        time_spent_seconds: int,
        trigger: SubmitTrigger = "user",
    ) -> Submission:
        if trigger not in SUBMIT_TRIGGERS:
            raise ValidationError(f"Unknown submit trigger: {trigger!r}")
        if time_spent_seconds < 0:
            raise ValidationError("Time spent cannot be negative.")
        padded = pad_answers(len(exercise.questions), answers)

        with self._condition:
            while self._in_flight:
                self._condition.wait()
            if self._submission is not None:
                return self._repeat(self._submission, exercise, padded, trigger)
            self._in_flight = True

        try:
            submission = self._build(exercise, padded, time_spent_seconds, trigger)
            self._store.add(submission)
            self._ledger.register(submission, exercise)
        except BaseException:
            with self._condition:
                self._in_flight = False
                self._condition.notify_all()
            raise

        with self._condition:
            self._submission = submission
            self._in_flight = False
            self._condition.notify_all()

        logger.info(
            "Finalized exercise=%s student=%s trigger=%s score=%d/%d",
            exercise.id,
            self._student_id,
            trigger,
            submission.score,
            submission.total_points,
        )
        if self._on_finalized is not None:
            self._on_finalized(submission)
        return submission

    def _build(
        self,
        exercise: Exercise,
        answers: tuple[AnswerValue, ...],
        time_spent_seconds: int,
        trigger: SubmitTrigger,
    ) -> Submission:
        results = grade_all(exercise.questions, answers)
        total_points = exercise.total_points
        totals = aggregate(results, total_points)
        return Submission(
            exercise_id=exercise.id,
            student_id=self._student_id,
            answers=answers,
            results=tuple(results),
            time_spent_seconds=time_spent_seconds,
            submitted_at=datetime.now(timezone.utc),
            score=totals.score,
            total_points=total_points,
            percentage=totals.percentage,
            trigger=trigger,
        )

    def _repeat(
        self,
        existing: Submission,
        exercise: Exercise,
        answers: tuple[AnswerValue, ...],
        trigger: SubmitTrigger,
    ) -> Submission:
        # A late forced submit never carries new intent, so it cannot diverge.
        diverged = existing.answers != answers and trigger != "timeout"
        if existing.exercise_id != exercise.id or diverged:
            raise DuplicateSubmissionError(
                f"Exercise {existing.exercise_id!r} was already submitted by "
                f"{self._student_id!r} with different answers."
            )
        logger.debug(
            "Ignoring repeated finalize (%s after %s) for exercise=%s student=%s",
            trigger,
            existing.trigger,
            existing.exercise_id,
            self._student_id,
        )
        # Manual review may have replaced the stored record since finalize.
        return self._store.get(existing.exercise_id, self._student_id) or existing
