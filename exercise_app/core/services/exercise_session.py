"""Service for managing one student's in-progress attempt at an exercise."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from threading import Lock

from exercise_app.core.errors import StateError, ValidationError
from exercise_app.core.models import (
    UNANSWERED,
    AnswerValue,
    Exercise,
    Submission,
    SubmitTrigger,
)
from exercise_app.core.services.review_ledger import ManualReviewLedger
from exercise_app.core.services.session_timer import SessionTimer
from exercise_app.core.services.submission_coordinator import SubmissionCoordinator
from exercise_app.core.services.submission_store import SubmissionStore

logger = logging.getLogger(__name__)


class ExerciseSession:
    """Owns the answer buffer, the countdown and the coordinator of one attempt."""

    def __init__(
        self,
        exercise: Exercise,
        student_id: str,
        store: SubmissionStore,
        ledger: ManualReviewLedger,
        background_timer: bool = True,
    ) -> None:
        self._exercise = exercise
        self._student_id = student_id
        self._lock = Lock()
        self._answers: list[AnswerValue] = [UNANSWERED] * len(exercise.questions)
        self._started_at: datetime | None = None
        self._background_timer = background_timer
        self._coordinator = SubmissionCoordinator(
            student_id=student_id,
            store=store,
            ledger=ledger,
            on_finalized=self._handle_finalized,
        )

        self._timer: SessionTimer | None = None
        if exercise.time_limit_seconds is not None:
            self._timer = SessionTimer(
                total_seconds=exercise.time_limit_seconds,
                on_force_submit=self._force_submit,
                name=f"SessionTimer-{exercise.id}-{student_id}",
            )

    @property
    def exercise(self) -> Exercise:
        return self._exercise

    @property
    def student_id(self) -> str:
        return self._student_id

    @property
    def timer(self) -> SessionTimer | None:
        return self._timer

    def is_finalized(self) -> bool:
        return self._coordinator.is_finalized()

    def get_submission(self) -> Submission | None:
        return self._coordinator.submission

    def touch(self) -> None:
        """Record a user interaction; the first one starts the countdown."""
        if self.is_finalized():
            raise StateError("Exercise already submitted.")
        with self._lock:
            first_interaction = self._started_at is None
            if first_interaction:
                self._started_at = datetime.now(timezone.utc)
        if first_interaction and self._timer is not None:
            self._timer.start(background=self._background_timer)

    def record_answer(self, question_index: int, answer: AnswerValue | None) -> None:
        if not 0 <= question_index < len(self._answers):
            raise ValidationError(f"Question index {question_index} out of range.")
        self.touch()
        with self._lock:
            self._answers[question_index] = UNANSWERED if answer is None else answer

    def get_answers(self) -> list[AnswerValue]:
        with self._lock:
            return list(self._answers)

    def get_answered_count(self) -> int:
        with self._lock:
            return sum(1 for answer in self._answers if answer != UNANSWERED)

    def get_remaining_seconds(self) -> int | None:
        if self._timer is None:
            return None
        return self._timer.remaining_seconds

    def elapsed_seconds(self) -> int:
        with self._lock:
            started_at = self._started_at
        if started_at is None:
            return 0
        return int((datetime.now(timezone.utc) - started_at).total_seconds())

    def submit(
        self,
        answers: list[AnswerValue | None] | None = None,
        time_spent_seconds: int | None = None,
        trigger: SubmitTrigger = "user",
    ) -> Submission:
        """Finalize the attempt, defaulting to the buffered answers and measured time."""
        if answers is None:
            answers = list(self.get_answers())
        if time_spent_seconds is None:
            time_spent_seconds = self.elapsed_seconds()
        return self._coordinator.finalize(self._exercise, answers, time_spent_seconds, trigger)

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()

    def _force_submit(self) -> None:
        if self._timer is None:
            return
        self.submit(time_spent_seconds=self._timer.total_seconds, trigger="timeout")

    def _handle_finalized(self, submission: Submission) -> None:
        if self._timer is not None and self._timer.cancel():
            logger.debug(
                "Timer cancelled after %s submit: exercise=%s student=%s",
                submission.trigger,
                submission.exercise_id,
                submission.student_id,
            )
