"""Business logic for exercises and attempts shared by the API and tooling."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from threading import Lock
from typing import Literal

from exercise_app.core.errors import StateError, ValidationError
from exercise_app.core.exercise_importer import load_exercise_from_file
from exercise_app.core.models import AnswerValue, Exercise, Submission, SubmitTrigger
from exercise_app.core.services.exercise_repository import ExerciseRepository
from exercise_app.core.services.exercise_session import ExerciseSession
from exercise_app.core.services.review_ledger import ManualReviewLedger, PendingReview
from exercise_app.core.services.submission_store import SubmissionStore

logger = logging.getLogger(__name__)

ExerciseStatus = Literal["all", "published", "draft"]
EXERCISE_STATUSES: tuple[ExerciseStatus, ...] = ("all", "published", "draft")


@dataclass(slots=True)
class ExerciseStatistics:
    """Snapshot derived from the stored submissions of one exercise."""

    exercise_id: str
    total_attempts: int
    average_percentage: float
    needs_grading: int


class ExerciseManager:
    """Facade over the repository, sessions, submission store and review ledger."""

    def __init__(self, background_timers: bool = True) -> None:
        self._lock = Lock()
        self._background_timers = background_timers

        self._repository = ExerciseRepository()
        self._store = SubmissionStore()
        self._ledger = ManualReviewLedger(self._store)
        self._sessions: dict[tuple[str, str], ExerciseSession] = {}

    # --- Exercise Repository Delegation ---

    def create_exercise(self, exercise: Exercise, published: bool = False) -> Exercise:
        stored = self._repository.add_exercise(exercise)
        if published:
            self._repository.set_published(stored.id, True)
        logger.info("Exercise created: id=%s questions=%d", stored.id, len(stored.questions))
        return stored

    def import_exercise(self, file_path: Path, published: bool = False) -> Exercise:
        imported = load_exercise_from_file(file_path)
        return self.create_exercise(imported.exercise, published=published)

    def get_exercise(self, exercise_id: str) -> Exercise:
        return self._repository.get_exercise(exercise_id)

    def get_exercises(
        self,
        published_only: bool = False,
        category: str | None = None,
        difficulty: str | None = None,
        status: ExerciseStatus = "all",
    ) -> list[Exercise]:
        """List exercises newest first. ``None`` or ``"all"`` disables a filter."""
        if status not in EXERCISE_STATUSES:
            raise ValidationError(f"Unknown exercise status filter: {status!r}")
        if published_only:
            status = "published"

        exercises = self._repository.get_exercises()
        if category and category != "all":
            exercises = [e for e in exercises if e.category == category]
        if difficulty and difficulty != "all":
            exercises = [e for e in exercises if e.difficulty == difficulty]
        if status != "all":
            wanted = status == "published"
            exercises = [e for e in exercises if self._repository.is_published(e.id) == wanted]
        return exercises

    def get_categories(self) -> list[str]:
        """Sorted distinct categories of the published exercises."""
        return sorted({e.category for e in self.get_exercises(published_only=True) if e.category})

    def set_published(self, exercise_id: str, published: bool) -> None:
        self._repository.set_published(exercise_id, published)

    def is_published(self, exercise_id: str) -> bool:
        return self._repository.is_published(exercise_id)

    def delete_exercise(self, exercise_id: str) -> int:
        """Remove an exercise with its sessions and review items; return the submissions dropped."""
        self._repository.delete_exercise(exercise_id)
        with self._lock:
            keys = [key for key in self._sessions if key[0] == exercise_id]
            sessions = [self._sessions.pop(key) for key in keys]
        for session in sessions:
            session.cancel()
        removed = self._store.delete_for_exercise(exercise_id)
        self._ledger.forget_exercise(exercise_id)
        logger.info("Exercise deleted: id=%s submissions=%d", exercise_id, removed)
        return removed

    # --- Attempt Delegation ---

    def get_session(self, exercise_id: str, student_id: str) -> ExerciseSession:
        """Return the student's attempt, opening it on first access."""
        exercise = self._repository.get_exercise(exercise_id)
        if not self._repository.is_published(exercise_id):
            raise StateError(f"Exercise {exercise_id!r} is not published.")
        with self._lock:
            session = self._sessions.get((exercise_id, student_id))
            if session is None:
                session = ExerciseSession(
                    exercise=exercise,
                    student_id=student_id,
                    store=self._store,
                    ledger=self._ledger,
                    background_timer=self._background_timers,
                )
                self._sessions[(exercise_id, student_id)] = session
            return session

    def start_attempt(self, exercise_id: str, student_id: str) -> ExerciseSession:
        session = self.get_session(exercise_id, student_id)
        session.touch()
        return session

    def record_answer(
        self,
        exercise_id: str,
        student_id: str,
        question_index: int,
        answer: AnswerValue | None,
    ) -> None:
        self.get_session(exercise_id, student_id).record_answer(question_index, answer)

    def submit(
        self,
        exercise_id: str,
        student_id: str,
        answers: list[AnswerValue | None] | None = None,
        time_spent_seconds: int | None = None,
        trigger: SubmitTrigger = "user",
    ) -> Submission:
        session = self.get_session(exercise_id, student_id)
        return session.submit(answers, time_spent_seconds, trigger)

    # --- Submission & Review Delegation ---

    def get_submission(self, exercise_id: str, student_id: str) -> Submission | None:
        return self._store.get(exercise_id, student_id)

    def get_submissions_for_exercise(self, exercise_id: str) -> list[Submission]:
        self._repository.get_exercise(exercise_id)
        return self._store.list_for_exercise(exercise_id)

    def get_submissions_for_student(self, student_id: str) -> list[Submission]:
        return self._store.list_for_student(student_id)

    def apply_correction(
        self,
        exercise_id: str,
        student_id: str,
        question_index: int,
        earned_points: int,
        is_correct: bool,
    ) -> Submission:
        submission = self._store.get(exercise_id, student_id)
        if submission is None:
            raise StateError(
                f"No submission for exercise {exercise_id!r} and student {student_id!r}."
            )
        return self._ledger.apply_correction(submission, question_index, earned_points, is_correct)

    def get_pending_reviews(self, exercise_id: str | None = None) -> list[PendingReview]:
        return self._ledger.pending_items(exercise_id)

    def get_exercise_statistics(self, exercise_id: str) -> ExerciseStatistics:
        submissions = self.get_submissions_for_exercise(exercise_id)
        if not submissions:
            average = 0.0
        else:
            average = sum(s.percentage for s in submissions) / len(submissions)
        return ExerciseStatistics(
            exercise_id=exercise_id,
            total_attempts=len(submissions),
            average_percentage=average,
            needs_grading=sum(1 for s in submissions if s.needs_grading),
        )
